# buildapp/models/catalog_entry.py
import uuid
from sqlalchemy import Column, String, Boolean, Numeric, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.models.mixins import TimestampMixin


class CatalogEntry(Base, TimestampMixin):
    """A supplier SKU. Catalog search lives elsewhere; we only read these rows."""

    __tablename__ = "catalog_entries"

    id = Column(
        String, primary_key=True, default=lambda: f"sku_{uuid.uuid4().hex[:12]}"
    )
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String, nullable=False)
    unit = Column(String, nullable=False, server_default=text("'each'"), default="each")
    base_price = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"), default=True)
    direct_order_available = Column(
        Boolean, nullable=False, server_default=text("true"), default=True
    )
    delivery_options = Column(
        String, nullable=False, server_default=text("'both'"), default="both"
    )  # pickup | delivery | both

    supplier = relationship("Supplier", back_populates="catalog_entries")

    __table_args__ = (
        Index("ix_catalog_entries_supplier_active", "supplier_id", "is_active"),
    )

    def supports(self, mode: str) -> bool:
        return self.delivery_options == "both" or self.delivery_options == mode
