# buildapp/crud/crud_rfq.py
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from buildapp.models.offer import Offer
from buildapp.models.rfq import RFQ
from buildapp.models.rfq_recipient import RFQRecipient
from buildapp.utils.query_builder import FilterField, ListQueryBuilder
from buildapp.utils.time import as_utc

RFQ_LIST_QUERY = ListQueryBuilder(
    filters={
        "status": FilterField(RFQ.status),
        "project_id": FilterField(RFQ.project_id),
        "title": FilterField(RFQ.title, operator="contains"),
        "created_after": FilterField(
            RFQ.created_at, operator="gte", coerce=lambda v: as_utc(datetime.fromisoformat(v))
        ),
        "created_before": FilterField(
            RFQ.created_at, operator="lte", coerce=lambda v: as_utc(datetime.fromisoformat(v))
        ),
    },
    sortable={
        "created_at": RFQ.created_at,
        "expires_at": RFQ.expires_at,
        "title": RFQ.title,
        "status": RFQ.status,
    },
    default_sort="created_at",
)


def get(db: Session, rfq_id: str) -> Optional[RFQ]:
    return db.query(RFQ).filter(RFQ.id == rfq_id).first()


def get_for_update(db: Session, rfq_id: str) -> Optional[RFQ]:
    return (
        db.query(RFQ)
        .filter(RFQ.id == rfq_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def get_recipient(db: Session, rfq_id: str, supplier_id: str) -> Optional[RFQRecipient]:
    return (
        db.query(RFQRecipient)
        .filter(RFQRecipient.rfq_id == rfq_id, RFQRecipient.supplier_id == supplier_id)
        .first()
    )


def count_offers(db: Session, rfq_id: str) -> int:
    return db.query(func.count(Offer.id)).filter(Offer.rfq_id == rfq_id).scalar()


def offer_counts(db: Session, rfq_ids: list) -> dict:
    if not rfq_ids:
        return {}
    return dict(
        db.query(Offer.rfq_id, func.count(Offer.id))
        .filter(Offer.rfq_id.in_(rfq_ids))
        .group_by(Offer.rfq_id)
        .all()
    )


def list_for_buyer(db: Session, buyer_id: str, **kwargs) -> dict:
    query = db.query(RFQ).filter(RFQ.buyer_id == buyer_id)
    return RFQ_LIST_QUERY.paginate(query, **kwargs)


def list_for_supplier(db: Session, supplier_id: str, **kwargs) -> dict:
    query = (
        db.query(RFQ)
        .join(RFQRecipient, RFQRecipient.rfq_id == RFQ.id)
        .filter(RFQRecipient.supplier_id == supplier_id)
    )
    return RFQ_LIST_QUERY.paginate(query, **kwargs)
