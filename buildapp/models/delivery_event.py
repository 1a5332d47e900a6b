# buildapp/models/delivery_event.py
import uuid
from sqlalchemy import Column, String, Text, JSON, Boolean, ForeignKey, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class DeliveryEvent(Base):
    """Evidence that goods were dropped off or collected. Many per order."""

    __tablename__ = "delivery_events"

    id = Column(
        String, primary_key=True, default=lambda: f"dlv_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    recorded_by_role = Column(String, nullable=False)  # buyer | supplier
    recorded_by_id = Column(String, nullable=False)
    photos = Column(JSON, nullable=False, default=list)
    # [{line_index, quantity}]
    quantities = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    location = Column(JSON, nullable=True)  # {lat, lng, address}
    is_partial = Column(Boolean, nullable=False, server_default=text("false"), default=False)
    delivered_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="delivery_events")
