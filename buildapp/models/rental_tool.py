# buildapp/models/rental_tool.py
import uuid
from sqlalchemy import Column, String, Text, Boolean, Numeric, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.models.mixins import TimestampMixin


class RentalTool(Base, TimestampMixin):
    __tablename__ = "rental_tools"

    id = Column(
        String, primary_key=True, default=lambda: f"tool_{uuid.uuid4().hex[:12]}"
    )
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    category = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    day_rate = Column(Numeric(12, 2), nullable=False)
    week_rate = Column(Numeric(12, 2), nullable=True)
    deposit_amount = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    delivery_option = Column(
        String, nullable=False, server_default=text("'pickup'"), default="pickup"
    )  # pickup | delivery | both
    direct_booking_available = Column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    is_active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    is_available = Column(Boolean, nullable=False, server_default=text("true"), default=True)

    supplier = relationship("Supplier", back_populates="rental_tools")

    __table_args__ = (
        Index("ix_rental_tools_supplier_active", "supplier_id", "is_active"),
    )

    def supports(self, mode: str) -> bool:
        return self.delivery_option == "both" or self.delivery_option == mode
