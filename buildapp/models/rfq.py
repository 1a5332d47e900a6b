# buildapp/models/rfq.py
import uuid
from sqlalchemy import (
    Column, String, Text, JSON, ForeignKey, Index, CheckConstraint, text
)
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime
from buildapp.models.mixins import TimestampMixin


class RFQ(Base, TimestampMixin):
    __tablename__ = "rfqs"

    id = Column(
        String, primary_key=True, default=lambda: f"rfq_{uuid.uuid4().hex[:12]}"
    )
    buyer_id = Column(String, nullable=False, index=True)
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title = Column(String, nullable=False)
    # [{description, quantity, unit, catalog_entry_id, spec_notes}]
    line_items = Column(JSON, nullable=False, default=list)
    preferred_window_start = Column(UTCDateTime, nullable=True)
    preferred_window_end = Column(UTCDateTime, nullable=True)
    delivery_address = Column(Text, nullable=True)
    additional_notes = Column(Text, nullable=True)

    status = Column(String, nullable=False, server_default=text("'active'"), default="active")
    expires_at = Column(UTCDateTime, nullable=False)
    closed_at = Column(UTCDateTime, nullable=True)

    recipients = relationship(
        "RFQRecipient", back_populates="rfq", cascade="all, delete-orphan"
    )
    offers = relationship("Offer", back_populates="rfq")
    project = relationship("Project")

    __table_args__ = (
        Index("ix_rfqs_buyer_status", "buyer_id", "status"),
        CheckConstraint(
            "preferred_window_start IS NULL OR preferred_window_end IS NULL "
            "OR preferred_window_start < preferred_window_end",
            name="ck_rfqs_preferred_window_order",
        ),
    )
