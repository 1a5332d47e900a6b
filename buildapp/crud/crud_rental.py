# buildapp/crud/crud_rental.py
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from buildapp.models.rental_booking import RentalBooking
from buildapp.models.rental_tool import RentalTool
from buildapp.utils.query_builder import FilterField, ListQueryBuilder

BOOKING_LIST_QUERY = ListQueryBuilder(
    filters={
        "status": FilterField(RentalBooking.status),
        "rental_tool_id": FilterField(RentalBooking.rental_tool_id),
        "project_id": FilterField(RentalBooking.project_id),
    },
    sortable={
        "created_at": RentalBooking.created_at,
        "start_date": RentalBooking.start_date,
        "end_date": RentalBooking.end_date,
        "total_rental_amount": RentalBooking.total_rental_amount,
    },
    default_sort="created_at",
)

TOOL_LIST_QUERY = ListQueryBuilder(
    filters={
        "supplier_id": FilterField(RentalTool.supplier_id),
        "category": FilterField(RentalTool.category),
        "delivery_option": FilterField(RentalTool.delivery_option),
        "name": FilterField(RentalTool.name, operator="contains"),
        "max_day_rate": FilterField(RentalTool.day_rate, operator="lte", coerce=float),
    },
    sortable={
        "name": RentalTool.name,
        "day_rate": RentalTool.day_rate,
        "week_rate": RentalTool.week_rate,
        "created_at": RentalTool.created_at,
    },
    default_sort="name",
    default_order="asc",
)


def get_by_ref(db: Session, ref: str, lock: bool = False) -> Optional[RentalBooking]:
    query = db.query(RentalBooking).filter(
        or_(RentalBooking.id == ref, RentalBooking.booking_number == ref)
    )
    if lock:
        query = query.with_for_update().populate_existing()
    return query.first()


def list_for_buyer(db: Session, buyer_id: str, **kwargs) -> dict:
    query = db.query(RentalBooking).filter(RentalBooking.buyer_id == buyer_id)
    return BOOKING_LIST_QUERY.paginate(query, **kwargs)


def list_for_supplier(db: Session, supplier_id: str, **kwargs) -> dict:
    query = db.query(RentalBooking).filter(RentalBooking.supplier_id == supplier_id)
    return BOOKING_LIST_QUERY.paginate(query, **kwargs)


def list_bookable_tools(db: Session, **kwargs) -> dict:
    query = db.query(RentalTool).filter(
        RentalTool.is_active.is_(True),
        RentalTool.is_available.is_(True),
        RentalTool.direct_booking_available.is_(True),
    )
    return TOOL_LIST_QUERY.paginate(query, **kwargs)


def overdue(db: Session, now: datetime) -> List[RentalBooking]:
    return (
        db.query(RentalBooking)
        .filter(
            RentalBooking.status == "active",
            RentalBooking.actual_end_date.is_(None),
            RentalBooking.end_date < now,
        )
        .order_by(RentalBooking.end_date.asc())
        .all()
    )
