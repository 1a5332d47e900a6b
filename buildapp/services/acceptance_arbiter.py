# buildapp/services/acceptance_arbiter.py
"""
Turns a winning offer into an order.

Accepting writes five things in one transaction: the order, the accepted
offer, the expired siblings, the closed RFQ and the order's first history
row. The offer update is guarded by `status = 'pending'`, so of two
concurrent accepts only the first to commit succeeds.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
)
from buildapp.crud import crud_offer
from buildapp.db.transaction import atomic, insert_numbered
from buildapp.models.offer import Offer
from buildapp.models.order import Order
from buildapp.models.rfq import RFQ
from buildapp.services import order_fulfillment
from buildapp.services.event_notifier import EventNotifier, user_channel
from buildapp.utils.numbering import generate_order_number
from buildapp.utils.pricing import line_total, to_money
from buildapp.utils.state_machine import Actor
from buildapp.utils.time import utcnow

logger = logging.getLogger(__name__)


def build_order_items(rfq_lines: list, line_prices: list) -> List[dict]:
    """
    Pair RFQ lines with offer prices by line_index, falling back to the
    price's position when it carries no index. Unpriced lines are left out.
    """
    prices_by_index = {}
    for position, price in enumerate(line_prices or []):
        index = price.get("line_index")
        prices_by_index[position if index is None else int(index)] = price

    items = []
    for position, line in enumerate(rfq_lines or []):
        index = line.get("line_index", position)
        price = prices_by_index.get(index)
        if price is None:
            continue
        unit_price = to_money(price["unit_price"])
        quantity = Decimal(str(line["quantity"]))
        items.append({
            "line_index": index,
            "description": line["description"],
            "quantity": str(quantity),
            "unit": line.get("unit"),
            "catalog_entry_id": line.get("catalog_entry_id"),
            "unit_price": str(unit_price),
            "line_total": str(line_total(unit_price, quantity)),
        })
    return items


def _load_for_buyer(db: Session, buyer_id: str, offer_id: str) -> Offer:
    offer = crud_offer.get(db, offer_id)
    if offer is None:
        raise NotFoundError("Offer not found")
    if offer.rfq.buyer_id != buyer_id:
        raise AuthorizationError("You do not own the RFQ for this offer")
    return offer


def _require_pending(offer: Offer, action: str) -> None:
    if offer.status != "pending":
        raise ConflictError(
            f"Cannot {action} offer in status '{offer.status}'",
            details={"current_status": offer.status, "requested": action},
        )


def accept(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    offer_id: str,
    now: Optional[datetime] = None,
) -> Order:
    now = now or utcnow()
    offer = _load_for_buyer(db, buyer_id, offer_id)
    _require_pending(offer, "accept")
    if offer.expires_at <= now:
        raise ConflictError("Offer has expired")

    with atomic(db, "offer acceptance"):
        offer = crud_offer.get_for_update(db, offer_id)
        _require_pending(offer, "accept")
        rfq = offer.rfq

        order = Order(
            buyer_id=buyer_id,
            supplier_id=offer.supplier_id,
            project_id=rfq.project_id,
            offer_id=offer.id,
            items=build_order_items(rfq.line_items, offer.line_prices),
            total_amount=to_money(offer.total_amount),
            delivery_fee=to_money(offer.delivery_fee),
            tax_amount=Decimal("0.00"),
            pickup_or_delivery="delivery",
            delivery_address=rfq.delivery_address,
            promised_window_start=offer.delivery_window_start,
            promised_window_end=offer.delivery_window_end,
            payment_terms=offer.payment_terms,
            notes=offer.notes,
            status="confirmed",
            confirmed_at=now,
        )
        insert_numbered(
            db, order, "order_number", lambda: generate_order_number(now),
            "order number allocation",
        )

        accepted = (
            db.query(Offer)
            .filter(Offer.id == offer.id, Offer.status == "pending")
            .update({"status": "accepted", "accepted_at": now}, synchronize_session="fetch")
        )
        if accepted == 0:
            raise ConflictError("Offer was accepted or changed by another request")

        expired = (
            db.query(Offer)
            .filter(
                Offer.rfq_id == rfq.id,
                Offer.id != offer.id,
                Offer.status == "pending",
            )
            .update({"status": "expired"}, synchronize_session="fetch")
        )

        closed = (
            db.query(RFQ)
            .filter(RFQ.id == rfq.id, RFQ.status == "active")
            .update({"status": "closed", "closed_at": now}, synchronize_session="fetch")
        )
        if closed == 0:
            raise ConflictError(f"RFQ is {rfq.status} and can no longer award offers")

        order_fulfillment.record_history(
            db, order, None, "confirmed", "accept_offer",
            Actor(role="buyer", id=buyer_id), note=f"from offer {offer.id}",
        )

    db.refresh(order)
    logger.info(
        f"Offer {offer_id} accepted by {buyer_id}: order {order.order_number}, "
        f"{expired} sibling offer(s) expired"
    )

    order_fulfillment.broadcast_created(notifier, order)
    notifier.emit(
        "offer:accepted",
        {"offer_id": offer_id, "rfq_id": order.offer.rfq_id, "order_number": order.order_number},
        [user_channel(order.supplier.user_id)],
    )
    return order


def reject(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    offer_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Offer:
    now = now or utcnow()
    offer = _load_for_buyer(db, buyer_id, offer_id)
    _require_pending(offer, "reject")

    with atomic(db, "offer rejection"):
        rejected = (
            db.query(Offer)
            .filter(Offer.id == offer_id, Offer.status == "pending")
            .update(
                {"status": "rejected", "rejected_at": now, "rejection_reason": reason},
                synchronize_session="fetch",
            )
        )
        if rejected == 0:
            raise ConflictError("Offer was accepted or changed by another request")

    db.refresh(offer)
    logger.info(f"Offer {offer_id} rejected by {buyer_id}")
    notifier.emit(
        "offer:rejected",
        {"offer_id": offer_id, "rfq_id": offer.rfq_id, "reason": reason},
        [user_channel(offer.supplier.user_id)],
    )
    return offer
