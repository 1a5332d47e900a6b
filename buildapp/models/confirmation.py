# buildapp/models/confirmation.py
import uuid
from sqlalchemy import Column, String, Text, JSON, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class Confirmation(Base):
    """Buyer's accept-or-dispute answer to a recorded delivery."""

    __tablename__ = "confirmations"

    id = Column(
        String, primary_key=True, default=lambda: f"cfm_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    delivery_event_id = Column(
        String, ForeignKey("delivery_events.id", ondelete="SET NULL"), nullable=True
    )
    confirmation_type = Column(String, nullable=False)  # confirm | dispute
    confirmed_by_role = Column(String, nullable=False)  # buyer | system
    confirmed_by_id = Column(String, nullable=True)
    dispute_category = Column(String, nullable=True)
    dispute_reason = Column(Text, nullable=True)
    evidence_photos = Column(JSON, nullable=False, default=list)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="confirmations")

    __table_args__ = (
        CheckConstraint(
            "confirmation_type <> 'dispute' OR dispute_category IS NOT NULL",
            name="ck_confirmations_dispute_category",
        ),
    )
