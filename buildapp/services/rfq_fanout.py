# buildapp/services/rfq_fanout.py
"""
Request-for-quote creation and fan-out to a bounded set of suppliers.

Each selected supplier gets an RFQRecipient row, which is both the access
grant for quoting and the place where first-view time is tracked.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from buildapp.core.config import settings
from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from buildapp.crud import crud_party, crud_rfq
from buildapp.db.transaction import atomic
from buildapp.models.rfq import RFQ
from buildapp.models.rfq_recipient import RFQRecipient
from buildapp.models.supplier import Supplier
from buildapp.schemas.rfq import MAX_RFQ_LINES, MAX_RFQ_SUPPLIERS, RFQCreate
from buildapp.services.event_notifier import SUPPLIERS_CHANNEL, EventNotifier, user_channel
from buildapp.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


def _unique(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(i for i in ids if i))


def get_owned(db: Session, *, buyer_id: str, rfq_id: str) -> RFQ:
    rfq = crud_rfq.get(db, rfq_id)
    if rfq is None:
        raise NotFoundError("RFQ not found")
    if rfq.buyer_id != buyer_id:
        raise AuthorizationError("You do not own this RFQ")
    return rfq


def get_for_recipient(db: Session, *, supplier: Supplier, rfq_id: str) -> RFQ:
    rfq = crud_rfq.get(db, rfq_id)
    if rfq is None or crud_rfq.get_recipient(db, rfq_id, supplier.id) is None:
        raise NotFoundError("RFQ not found")
    return rfq


def create(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    data: RFQCreate,
    now: Optional[datetime] = None,
) -> RFQ:
    now = now or utcnow()

    supplier_ids = _unique(data.supplier_ids)
    if not 1 <= len(supplier_ids) <= MAX_RFQ_SUPPLIERS:
        raise ValidationError(
            f"An RFQ must be sent to between 1 and {MAX_RFQ_SUPPLIERS} suppliers"
        )
    if not 1 <= len(data.line_items) <= MAX_RFQ_LINES:
        raise ValidationError(f"An RFQ must have between 1 and {MAX_RFQ_LINES} lines")

    suppliers = {s.id: s for s in crud_party.get_suppliers(db, supplier_ids)}
    missing = [sid for sid in supplier_ids if sid not in suppliers]
    if missing:
        raise NotFoundError(f"Supplier(s) not found: {', '.join(missing)}")
    inactive = [sid for sid in supplier_ids if not suppliers[sid].is_active]
    if inactive:
        raise ValidationError(
            f"Supplier(s) not accepting requests: {', '.join(inactive)}"
        )

    if data.project_id:
        project = crud_party.get_project(db, data.project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if project.owner_id != buyer_id:
            raise AuthorizationError("You do not own this project")

    expiry_days = data.expiry_days or settings.RFQ_DEFAULT_EXPIRY_DAYS

    with atomic(db, "RFQ creation"):
        rfq = RFQ(
            buyer_id=buyer_id,
            project_id=data.project_id,
            title=data.title,
            line_items=[
                {
                    "line_index": index,
                    "description": line.description,
                    "quantity": str(line.quantity),
                    "unit": line.unit,
                    "catalog_entry_id": line.catalog_entry_id,
                    "spec_notes": line.spec_notes,
                }
                for index, line in enumerate(data.line_items)
            ],
            preferred_window_start=as_utc(data.preferred_window_start),
            preferred_window_end=as_utc(data.preferred_window_end),
            delivery_address=data.delivery_address,
            additional_notes=data.additional_notes,
            status="active",
            expires_at=now + timedelta(days=expiry_days),
        )
        db.add(rfq)
        db.flush()
        for supplier_id in supplier_ids:
            db.add(RFQRecipient(rfq_id=rfq.id, supplier_id=supplier_id, notified_at=now))

    db.refresh(rfq)
    logger.info(f"RFQ {rfq.id} created by {buyer_id} for {len(supplier_ids)} supplier(s)")

    for supplier_id in supplier_ids:
        notifier.emit(
            "rfq:created",
            {"rfq_id": rfq.id, "title": rfq.title, "expires_at": rfq.expires_at},
            [user_channel(suppliers[supplier_id].user_id)],
        )
    notifier.emit("rfqs:list-updated", {"rfq_id": rfq.id}, [SUPPLIERS_CHANNEL])
    return rfq


def close(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    rfq_id: str,
    now: Optional[datetime] = None,
) -> RFQ:
    now = now or utcnow()
    get_owned(db, buyer_id=buyer_id, rfq_id=rfq_id)

    with atomic(db, "RFQ close"):
        updated = (
            db.query(RFQ)
            .filter(RFQ.id == rfq_id, RFQ.status == "active")
            .update({"status": "closed", "closed_at": now}, synchronize_session="fetch")
        )
        if updated == 0:
            current = crud_rfq.get(db, rfq_id)
            raise ConflictError(
                f"Cannot close RFQ in status '{current.status}'",
                details={"current_status": current.status, "requested": "close"},
            )

    rfq = crud_rfq.get(db, rfq_id)
    logger.info(f"RFQ {rfq_id} closed by {buyer_id}")
    notifier.emit("rfqs:list-updated", {"rfq_id": rfq_id, "status": "closed"},
                  [SUPPLIERS_CHANNEL, user_channel(buyer_id)])
    return rfq


def delete(db: Session, *, buyer_id: str, rfq_id: str) -> None:
    get_owned(db, buyer_id=buyer_id, rfq_id=rfq_id)

    with atomic(db, "RFQ delete"):
        rfq = crud_rfq.get_for_update(db, rfq_id)
        offer_count = crud_rfq.count_offers(db, rfq_id)
        if offer_count > 0:
            raise ConflictError(
                f"Cannot delete an RFQ that already has {offer_count} offer(s)"
            )
        db.delete(rfq)

    logger.info(f"RFQ {rfq_id} deleted by {buyer_id}")


def mark_viewed(
    db: Session,
    *,
    supplier: Supplier,
    rfq_id: str,
    now: Optional[datetime] = None,
) -> RFQRecipient:
    """Record the supplier's first view. Later views leave viewed_at alone."""
    recipient = crud_rfq.get_recipient(db, rfq_id, supplier.id)
    if recipient is None:
        raise NotFoundError("RFQ not found")
    if recipient.viewed_at is None:
        with atomic(db, "RFQ view tracking"):
            (
                db.query(RFQRecipient)
                .filter(RFQRecipient.id == recipient.id, RFQRecipient.viewed_at.is_(None))
                .update({"viewed_at": now or utcnow()}, synchronize_session="fetch")
            )
        db.refresh(recipient)
    return recipient


def expire_overdue(db: Session, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    with atomic(db, "RFQ expiry"):
        count = (
            db.query(RFQ)
            .filter(RFQ.status == "active", RFQ.expires_at <= now)
            .update({"status": "expired"}, synchronize_session="fetch")
        )
    return count
