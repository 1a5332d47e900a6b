# buildapp/services/offer_ledger.py
"""
Supplier offers on RFQs.

There is at most one offer row per (RFQ, supplier). Resubmitting archives
the current row into offer_history under the next version number and then
overwrites it in place.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from buildapp.core.config import settings
from buildapp.core.errors import ConflictError, NotFoundError, ValidationError
from buildapp.crud import crud_offer, crud_rfq
from buildapp.db.transaction import atomic
from buildapp.models.offer import Offer
from buildapp.models.offer_history import OfferHistory
from buildapp.models.supplier import Supplier
from buildapp.schemas.offer import OfferLinePrice, OfferSubmit, PaymentTerms
from buildapp.services.event_notifier import BUYERS_CHANNEL, EventNotifier, user_channel
from buildapp.services.trust_metrics import TrustMetricsReader
from buildapp.utils.pricing import line_total, sum_money, to_money
from buildapp.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    "line_prices",
    "total_amount",
    "delivery_fee",
    "delivery_window_start",
    "delivery_window_end",
    "payment_terms",
    "notes",
    "expires_at",
    "status",
)


def normalize_payment_terms(value: Optional[str]) -> str:
    return value if value in PaymentTerms.ALL else PaymentTerms.DEFAULT


def _normalize_line_prices(rfq_lines: list, prices: List[OfferLinePrice]) -> list:
    """Give every price a line_index (falling back to position) and check it."""
    normalized = []
    seen = set()
    for position, price in enumerate(prices):
        index = price.line_index if price.line_index is not None else position
        if index >= len(rfq_lines):
            raise ValidationError(
                f"Line price refers to line {index} but the RFQ has {len(rfq_lines)} line(s)"
            )
        if index in seen:
            raise ValidationError(f"Duplicate price for RFQ line {index}")
        seen.add(index)
        normalized.append({
            "line_index": index,
            "unit_price": str(to_money(price.unit_price)),
            "notes": price.notes,
        })
    return normalized


def _computed_total(rfq_lines: list, line_prices: list) -> Decimal:
    return sum_money(
        line_total(price["unit_price"], rfq_lines[price["line_index"]]["quantity"])
        for price in line_prices
    )


def _snapshot(offer: Offer, version_number: int, now: datetime) -> OfferHistory:
    return OfferHistory(
        offer_id=offer.id,
        version_number=version_number,
        created_at=offer.updated_at or offer.created_at,
        superseded_at=now,
        **{name: getattr(offer, name) for name in SNAPSHOT_FIELDS},
    )


def submit(
    db: Session,
    notifier: EventNotifier,
    *,
    supplier: Supplier,
    rfq_id: str,
    data: OfferSubmit,
    now: Optional[datetime] = None,
) -> Tuple[Offer, bool]:
    """Insert or replace the supplier's offer. Returns (offer, created)."""
    now = now or utcnow()

    rfq = crud_rfq.get(db, rfq_id)
    if rfq is None:
        raise NotFoundError("RFQ not found")
    if crud_rfq.get_recipient(db, rfq_id, supplier.id) is None:
        raise ConflictError("This supplier was not invited to quote on this RFQ")
    if rfq.status != "active":
        raise ConflictError(f"RFQ is {rfq.status} and no longer accepts offers")

    line_prices = _normalize_line_prices(rfq.line_items, data.line_prices)
    total_amount = (
        to_money(data.total_amount)
        if data.total_amount is not None
        else _computed_total(rfq.line_items, line_prices)
    )
    expires_at = as_utc(data.expires_at) or now + timedelta(
        days=settings.OFFER_DEFAULT_EXPIRY_DAYS
    )
    if expires_at <= now:
        raise ValidationError("Offer expiry must be in the future")

    fields = {
        "line_prices": line_prices,
        "total_amount": total_amount,
        "delivery_fee": to_money(data.delivery_fee),
        "delivery_window_start": as_utc(data.delivery_window_start),
        "delivery_window_end": as_utc(data.delivery_window_end),
        "payment_terms": normalize_payment_terms(data.payment_terms),
        "notes": data.notes,
        "expires_at": expires_at,
    }

    with atomic(db, "offer submission"):
        offer = crud_offer.get_for_rfq_supplier(db, rfq_id, supplier.id, lock=True)
        created = offer is None
        if created:
            offer = Offer(
                rfq_id=rfq_id,
                supplier_id=supplier.id,
                status=data.status or "pending",
                **fields,
            )
            db.add(offer)
        else:
            version = crud_offer.next_version_number(db, offer.id)
            db.add(_snapshot(offer, version, now))
            for name, value in fields.items():
                setattr(offer, name, value)
            if data.status is not None:
                offer.status = data.status
            offer.updated_at = now

    db.refresh(offer)
    logger.info(
        f"Offer {offer.id} {'submitted' if created else 'revised'} by supplier "
        f"{supplier.id} on RFQ {rfq_id}"
    )

    notifier.emit(
        "offer:created",
        {
            "offer_id": offer.id,
            "rfq_id": rfq_id,
            "supplier_id": supplier.id,
            "total_amount": offer.total_amount,
            "revised": not created,
        },
        [user_channel(rfq.buyer_id), BUYERS_CHANNEL],
    )
    notifier.to_user(rfq.buyer_id, "rfqs:list-updated", {"rfq_id": rfq_id})
    return offer, created


def withdraw(
    db: Session,
    notifier: EventNotifier,
    *,
    supplier: Supplier,
    offer_id: str,
) -> Offer:
    offer = crud_offer.get(db, offer_id)
    if offer is None or offer.supplier_id != supplier.id:
        raise NotFoundError("Offer not found")

    with atomic(db, "offer withdrawal"):
        updated = (
            db.query(Offer)
            .filter(Offer.id == offer_id, Offer.status == "pending")
            .update({"status": "withdrawn"}, synchronize_session="fetch")
        )
        if updated == 0:
            raise ConflictError(
                f"Cannot withdraw offer in status '{offer.status}'",
                details={"current_status": offer.status, "requested": "withdraw"},
            )

    db.refresh(offer)
    notifier.to_user(offer.rfq.buyer_id, "rfqs:list-updated", {"rfq_id": offer.rfq_id})
    return offer


def history(db: Session, *, supplier: Supplier, rfq_id: str) -> Tuple[Offer, list]:
    offer = crud_offer.get_for_rfq_supplier(db, rfq_id, supplier.id)
    if offer is None:
        raise NotFoundError("No offer submitted for this RFQ")
    return offer, crud_offer.list_history(db, offer.id)


def list_for_buyer(
    db: Session,
    trust_reader: TrustMetricsReader,
    *,
    rfq_id: str,
) -> List[Tuple[Offer, Optional[dict]]]:
    """Offers cheapest first, each paired with the supplier's trust metrics."""
    return [
        (offer, trust_reader.get(offer.supplier_id))
        for offer in crud_offer.list_for_rfq(db, rfq_id)
    ]


def expire_overdue(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    with atomic(db, "offer expiry"):
        count = (
            db.query(Offer)
            .filter(Offer.status == "pending", Offer.expires_at <= now)
            .update({"status": "expired"}, synchronize_session="fetch")
        )
    return count
