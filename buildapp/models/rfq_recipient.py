# buildapp/models/rfq_recipient.py
import uuid
from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime
from buildapp.models.mixins import TimestampMixin


class RFQRecipient(Base, TimestampMixin):
    """Access grant: the supplier may see the RFQ and submit one offer on it."""

    __tablename__ = "rfq_recipients"

    id = Column(
        String, primary_key=True, default=lambda: f"rfr_{uuid.uuid4().hex[:12]}"
    )
    rfq_id = Column(
        String, ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notified_at = Column(UTCDateTime, nullable=True)
    viewed_at = Column(UTCDateTime, nullable=True)

    rfq = relationship("RFQ", back_populates="recipients")
    supplier = relationship("Supplier")

    __table_args__ = (
        UniqueConstraint("rfq_id", "supplier_id", name="uq_rfq_recipient"),
    )
