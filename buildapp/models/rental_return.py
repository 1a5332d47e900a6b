# buildapp/models/rental_return.py
import uuid
from sqlalchemy import Column, String, Text, JSON, Boolean, Integer, Numeric, ForeignKey, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class RentalReturn(Base):
    __tablename__ = "rental_returns"

    id = Column(
        String, primary_key=True, default=lambda: f"rrt_{uuid.uuid4().hex[:12]}"
    )
    booking_id = Column(
        String, ForeignKey("rental_bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    confirmed_by_role = Column(String, nullable=False)
    confirmed_by_id = Column(String, nullable=False)
    photos = Column(JSON, nullable=False, default=list)
    condition_notes = Column(Text, nullable=True)
    is_late = Column(Boolean, nullable=False, server_default=text("false"), default=False)
    days_overdue = Column(Integer, nullable=False, server_default=text("0"), default=0)
    late_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    returned_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    booking = relationship("RentalBooking", back_populates="rental_return")
