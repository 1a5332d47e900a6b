# buildapp/crud/crud_order.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from buildapp.models.order import Order
from buildapp.utils.query_builder import FilterField, ListQueryBuilder

ORDER_LIST_QUERY = ListQueryBuilder(
    filters={
        "status": FilterField(Order.status),
        "pickup_or_delivery": FilterField(Order.pickup_or_delivery),
        "project_id": FilterField(Order.project_id),
        "proposal_status": FilterField(Order.proposal_status),
        "order_number": FilterField(Order.order_number, operator="contains"),
    },
    sortable={
        "created_at": Order.created_at,
        "updated_at": Order.updated_at,
        "grand_total": Order.grand_total,
        "status": Order.status,
        "promised_window_start": Order.promised_window_start,
    },
    default_sort="created_at",
)


def get_by_ref(db: Session, ref: str, lock: bool = False) -> Optional[Order]:
    """Look an order up by id or by order number."""
    query = db.query(Order).filter(or_(Order.id == ref, Order.order_number == ref))
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def list_for_buyer(db: Session, buyer_id: str, **kwargs) -> dict:
    query = db.query(Order).filter(Order.buyer_id == buyer_id)
    return ORDER_LIST_QUERY.paginate(query, **kwargs)


def list_for_supplier(db: Session, supplier_id: str, **kwargs) -> dict:
    query = db.query(Order).filter(Order.supplier_id == supplier_id)
    return ORDER_LIST_QUERY.paginate(query, **kwargs)


def due_for_auto_completion(db: Session, now: datetime, limit: int = 100) -> List[Order]:
    return (
        db.query(Order)
        .filter(
            Order.status == "delivered",
            Order.confirmation_deadline.isnot(None),
            Order.confirmation_deadline <= now,
        )
        .order_by(Order.confirmation_deadline.asc())
        .limit(limit)
        .all()
    )
