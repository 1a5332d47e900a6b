# buildapp/crud/crud_offer.py
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from buildapp.models.offer import Offer
from buildapp.models.offer_history import OfferHistory


def get(db: Session, offer_id: str) -> Optional[Offer]:
    return db.query(Offer).filter(Offer.id == offer_id).first()


def get_for_update(db: Session, offer_id: str) -> Optional[Offer]:
    return (
        db.query(Offer)
        .filter(Offer.id == offer_id)
        .with_for_update()
        .populate_existing()
        .first()
    )


def get_for_rfq_supplier(db: Session, rfq_id: str, supplier_id: str,
                         lock: bool = False) -> Optional[Offer]:
    query = db.query(Offer).filter(
        Offer.rfq_id == rfq_id, Offer.supplier_id == supplier_id
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def list_for_rfq(db: Session, rfq_id: str) -> List[Offer]:
    return (
        db.query(Offer)
        .filter(Offer.rfq_id == rfq_id)
        .order_by(Offer.total_amount.asc(), Offer.created_at.asc())
        .all()
    )


def next_version_number(db: Session, offer_id: str) -> int:
    current = (
        db.query(func.max(OfferHistory.version_number))
        .filter(OfferHistory.offer_id == offer_id)
        .scalar()
    )
    return (current or 0) + 1


def list_history(db: Session, offer_id: str) -> List[OfferHistory]:
    return (
        db.query(OfferHistory)
        .filter(OfferHistory.offer_id == offer_id)
        .order_by(OfferHistory.version_number.desc())
        .all()
    )
