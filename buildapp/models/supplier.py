# buildapp/models/supplier.py
import uuid
from sqlalchemy import Column, String, Boolean, Numeric, text
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.models.mixins import TimestampMixin


class Supplier(Base, TimestampMixin):
    __tablename__ = "suppliers"

    id = Column(
        String, primary_key=True, default=lambda: f"sup_{uuid.uuid4().hex[:12]}"
    )
    # Login identity of the supplier's owner (token `sub`)
    user_id = Column(String, nullable=False, unique=True, index=True)
    business_name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    min_order_value = Column(Numeric(12, 2), nullable=True)
    payment_terms = Column(String, nullable=False, server_default=text("'cod'"), default="cod")

    catalog_entries = relationship("CatalogEntry", back_populates="supplier")
    rental_tools = relationship("RentalTool", back_populates="supplier")
