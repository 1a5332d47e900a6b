# buildapp/services/direct_order_factory.py
"""Orders placed straight from a buyer's cart, without an RFQ."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from buildapp.crud import crud_party
from buildapp.db.transaction import atomic, insert_numbered
from buildapp.models.order import Order
from buildapp.schemas.order import DirectOrderCreate
from buildapp.services import order_fulfillment
from buildapp.services.event_notifier import EventNotifier
from buildapp.services.offer_ledger import normalize_payment_terms
from buildapp.utils.numbering import generate_order_number
from buildapp.utils.pricing import line_total, sum_money, to_money
from buildapp.utils.state_machine import Actor
from buildapp.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


def create(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    data: DirectOrderCreate,
    now: Optional[datetime] = None,
) -> Order:
    now = now or utcnow()
    mode = data.pickup_or_delivery

    if mode == "delivery" and not (data.delivery_address or "").strip():
        raise ValidationError("A delivery address is required for delivery orders")

    supplier = crud_party.get_supplier(db, data.supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier not found")
    if not supplier.is_active:
        raise ValidationError("Supplier is not currently accepting orders")

    if data.project_id:
        project = crud_party.get_project(db, data.project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if project.owner_id != buyer_id:
            raise AuthorizationError("You do not own this project")

    entries = crud_party.get_catalog_entries(db, [i.catalog_entry_id for i in data.items])
    items = []
    for index, item in enumerate(data.items):
        entry = entries.get(item.catalog_entry_id)
        if entry is None or entry.supplier_id != supplier.id:
            raise ValidationError(
                f"Item {item.catalog_entry_id} is not sold by this supplier"
            )
        if not entry.is_active:
            raise ValidationError(f"{entry.name} is no longer available")
        if not entry.direct_order_available:
            raise ValidationError(f"{entry.name} cannot be ordered directly")
        if not entry.supports(mode):
            raise ValidationError(f"{entry.name} is not available for {mode}")

        unit_price = to_money(entry.base_price)
        items.append({
            "line_index": index,
            "description": entry.name,
            "quantity": str(item.quantity),
            "unit": entry.unit,
            "catalog_entry_id": entry.id,
            "unit_price": str(unit_price),
            "line_total": str(line_total(unit_price, item.quantity)),
        })

    total_amount = sum_money(Decimal(i["line_total"]) for i in items)
    if supplier.min_order_value is not None:
        minimum = to_money(supplier.min_order_value)
        if total_amount < minimum:
            shortfall = to_money(minimum - total_amount)
            raise ConflictError(
                f"Order total {total_amount} is below the supplier's minimum order "
                f"value of {minimum} (short by {shortfall})",
                details={
                    "total_amount": str(total_amount),
                    "min_order_value": str(minimum),
                    "shortfall": str(shortfall),
                },
            )

    with atomic(db, "direct order creation"):
        order = Order(
            buyer_id=buyer_id,
            supplier_id=supplier.id,
            project_id=data.project_id,
            items=items,
            total_amount=total_amount,
            delivery_fee=Decimal("0.00"),
            tax_amount=Decimal("0.00"),
            pickup_or_delivery=mode,
            delivery_address=data.delivery_address if mode == "delivery" else None,
            promised_window_start=as_utc(data.window_start),
            promised_window_end=as_utc(data.window_end),
            payment_terms=normalize_payment_terms(data.payment_terms),
            notes=data.notes,
            status="pending",
        )
        insert_numbered(
            db, order, "order_number", lambda: generate_order_number(now),
            "order number allocation",
        )
        order_fulfillment.record_history(
            db, order, None, "pending", "direct_order", Actor(role="buyer", id=buyer_id)
        )

    db.refresh(order)
    logger.info(
        f"Direct order {order.order_number} placed by {buyer_id} with supplier "
        f"{supplier.id} for {order.grand_total}"
    )
    order_fulfillment.broadcast_created(notifier, order)
    return order
