# buildapp/models/order_status_history.py
import uuid
from sqlalchemy import Column, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(
        String, primary_key=True, default=lambda: f"osh_{uuid.uuid4().hex[:12]}"
    )
    order_id = Column(
        String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    old_status = Column(String, nullable=True)
    new_status = Column(String, nullable=False)
    event = Column(String, nullable=False)
    actor_role = Column(String, nullable=False)  # buyer | supplier | system
    actor_id = Column(String, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())

    order = relationship("Order", back_populates="status_history")
