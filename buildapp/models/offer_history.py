# buildapp/models/offer_history.py
import uuid
from sqlalchemy import (
    Column, String, Text, JSON, Integer, Numeric, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class OfferHistory(Base):
    """Snapshot of an offer as it stood before a resubmission overwrote it."""

    __tablename__ = "offer_history"

    id = Column(
        String, primary_key=True, default=lambda: f"ofh_{uuid.uuid4().hex[:12]}"
    )
    offer_id = Column(
        String, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number = Column(Integer, nullable=False)

    line_prices = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(12, 2), nullable=False)
    delivery_fee = Column(Numeric(12, 2), nullable=False)
    delivery_window_start = Column(UTCDateTime, nullable=True)
    delivery_window_end = Column(UTCDateTime, nullable=True)
    payment_terms = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    expires_at = Column(UTCDateTime, nullable=True)
    status = Column(String, nullable=False)

    # When the archived version was submitted, and when it was replaced
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    superseded_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    offer = relationship("Offer", back_populates="history")

    __table_args__ = (
        UniqueConstraint("offer_id", "version_number", name="uq_offer_history_version"),
    )
