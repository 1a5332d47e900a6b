# buildapp/models/rental_handover.py
import uuid
from sqlalchemy import Column, String, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class RentalHandover(Base):
    __tablename__ = "rental_handovers"

    id = Column(
        String, primary_key=True, default=lambda: f"rho_{uuid.uuid4().hex[:12]}"
    )
    # unique: at most one handover per booking, even under concurrent submits
    booking_id = Column(
        String, ForeignKey("rental_bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    confirmed_by_role = Column(String, nullable=False)
    confirmed_by_id = Column(String, nullable=False)
    photos = Column(JSON, nullable=False, default=list)
    condition_notes = Column(Text, nullable=True)
    handed_over_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    booking = relationship("RentalBooking", back_populates="handover")
