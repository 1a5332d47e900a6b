# buildapp/models/offer.py
import uuid
from sqlalchemy import (
    Column, String, Text, JSON, Numeric, ForeignKey, UniqueConstraint, Index, text
)
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime
from buildapp.models.mixins import TimestampMixin


class Offer(Base, TimestampMixin):
    __tablename__ = "offers"

    id = Column(
        String, primary_key=True, default=lambda: f"ofr_{uuid.uuid4().hex[:12]}"
    )
    rfq_id = Column(
        String, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # [{line_index, unit_price, notes}]
    line_prices = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(12, 2), nullable=False)
    delivery_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    delivery_window_start = Column(UTCDateTime, nullable=True)
    delivery_window_end = Column(UTCDateTime, nullable=True)
    payment_terms = Column(String, nullable=False, server_default=text("'cod'"), default="cod")
    notes = Column(Text, nullable=True)
    expires_at = Column(UTCDateTime, nullable=False)

    status = Column(String, nullable=False, server_default=text("'pending'"), default="pending")
    accepted_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    rfq = relationship("RFQ", back_populates="offers")
    supplier = relationship("Supplier")
    history = relationship(
        "OfferHistory",
        back_populates="offer",
        cascade="all, delete-orphan",
        order_by="OfferHistory.version_number.desc()",
    )

    __table_args__ = (
        UniqueConstraint("rfq_id", "supplier_id", name="uq_offer_rfq_supplier"),
        Index("ix_offers_rfq_status", "rfq_id", "status"),
    )
