# buildapp/models/order.py
import uuid
from decimal import Decimal

from sqlalchemy import (
    Column, String, Text, JSON, Numeric, ForeignKey, Index, CheckConstraint,
    event, text
)
from sqlalchemy.orm import relationship

from buildapp.db.base_class import Base
from buildapp.db.types import UTCDateTime
from buildapp.models.mixins import TimestampMixin, NegotiatedWindowMixin


class Order(Base, TimestampMixin, NegotiatedWindowMixin):
    __tablename__ = "orders"

    id = Column(
        String, primary_key=True, default=lambda: f"ord_{uuid.uuid4().hex[:12]}"
    )
    order_number = Column(String, nullable=False, unique=True, index=True)

    buyer_id = Column(String, nullable=False, index=True)
    supplier_id = Column(
        String, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    project_id = Column(
        String, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True
    )
    offer_id = Column(
        String, ForeignKey("offers.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    # [{description, quantity, unit, catalog_entry_id, unit_price, line_total}]
    items = Column(JSON, nullable=False, default=list)

    # Money. grand_total is derived on every flush, never taken from callers.
    total_amount = Column(Numeric(12, 2), nullable=False)
    delivery_fee = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    grand_total = Column(Numeric(12, 2), nullable=False)

    pickup_or_delivery = Column(String, nullable=False)  # pickup | delivery
    delivery_address = Column(Text, nullable=True)
    payment_terms = Column(String, nullable=False, server_default=text("'cod'"), default="cod")
    notes = Column(Text, nullable=True)

    status = Column(String, nullable=False, server_default=text("'pending'"), default="pending")
    confirmation_deadline = Column(UTCDateTime, nullable=True)
    confirmed_at = Column(UTCDateTime, nullable=True)
    delivered_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    supplier = relationship("Supplier")
    offer = relationship("Offer")
    delivery_events = relationship(
        "DeliveryEvent", back_populates="order", cascade="all, delete-orphan",
        order_by="DeliveryEvent.delivered_at",
    )
    confirmations = relationship(
        "Confirmation", back_populates="order", cascade="all, delete-orphan"
    )
    status_history = relationship(
        "OrderStatusHistory", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderStatusHistory.created_at",
    )

    __table_args__ = (
        Index("ix_orders_buyer_status", "buyer_id", "status"),
        Index("ix_orders_supplier_status", "supplier_id", "status"),
        Index("ix_orders_status_deadline", "status", "confirmation_deadline"),
        CheckConstraint(
            "grand_total = total_amount + delivery_fee + tax_amount",
            name="ck_orders_grand_total",
        ).ddl_if(dialect="postgresql"),
        CheckConstraint(
            "total_amount >= 0 AND delivery_fee >= 0 AND tax_amount >= 0",
            name="ck_orders_non_negative_amounts",
        ),
        CheckConstraint(
            "pickup_or_delivery IN ('pickup', 'delivery')",
            name="ck_orders_pickup_or_delivery",
        ),
    )

    def recompute_totals(self) -> Decimal:
        self.grand_total = (
            Decimal(self.total_amount or 0)
            + Decimal(self.delivery_fee or 0)
            + Decimal(self.tax_amount or 0)
        ).quantize(Decimal("0.01"))
        return self.grand_total


@event.listens_for(Order, "before_insert")
@event.listens_for(Order, "before_update")
def _derive_grand_total(mapper, connection, target):
    target.recompute_totals()
