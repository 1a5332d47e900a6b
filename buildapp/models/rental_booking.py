# buildapp/models/rental_booking.py
import uuid
from datetime import datetime

from sqlalchemy import (
    Column, String, Text, Integer, Numeric, ForeignKey, Index, CheckConstraint, text
)
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime
from buildapp.models.mixins import TimestampMixin, NegotiatedWindowMixin


class RentalBooking(Base, TimestampMixin, NegotiatedWindowMixin):
    __tablename__ = "rental_bookings"

    id = Column(
        String, primary_key=True, default=lambda: f"rnt_{uuid.uuid4().hex[:12]}"
    )
    booking_number = Column(String, nullable=False, unique=True, index=True)

    buyer_id = Column(String, nullable=False, index=True)
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    rental_tool_id = Column(
        String, ForeignKey("rental_tools.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )

    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)
    actual_start_date = Column(UTCDateTime, nullable=True)
    actual_end_date = Column(UTCDateTime, nullable=True)
    rental_duration_days = Column(Integer, nullable=False)

    day_rate = Column(Numeric(12, 2), nullable=False)
    week_rate = Column(Numeric(12, 2), nullable=True)
    total_rental_amount = Column(Numeric(12, 2), nullable=False)
    deposit_amount = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    delivery_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    late_return_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    damage_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)

    pickup_or_delivery = Column(String, nullable=False)
    delivery_address = Column(Text, nullable=True)
    payment_terms = Column(String, nullable=False, server_default=text("'cod'"), default="cod")
    notes = Column(Text, nullable=True)

    # overdue is never stored; see is_overdue()
    status = Column(String, nullable=False, server_default=text("'pending'"), default="pending")
    confirmed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    dispute_reason = Column(Text, nullable=True)

    tool = relationship("RentalTool")
    supplier = relationship("Supplier")
    handover = relationship(
        "RentalHandover", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )
    rental_return = relationship(
        "RentalReturn", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_rental_bookings_status_end", "status", "end_date"),
        CheckConstraint("start_date < end_date", name="ck_rental_bookings_dates"),
    )

    def is_overdue(self, now: datetime) -> bool:
        return (
            self.status == "active"
            and self.actual_end_date is None
            and self.end_date < now
        )
