# buildapp/schemas/order.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from buildapp.schemas.offer import PaymentTerms

DISPUTE_CATEGORIES = (
    "wrong_quantity",
    "wrong_item",
    "damaged",
    "late_delivery",
    "quality_issue",
    "other",
)


class DirectOrderItem(BaseModel):
    catalog_entry_id: str
    quantity: Decimal = Field(..., gt=0)


class DirectOrderCreate(BaseModel):
    supplier_id: str
    items: List[DirectOrderItem] = Field(..., min_length=1)
    pickup_or_delivery: Literal["pickup", "delivery"]
    delivery_address: Optional[str] = None
    payment_terms: str = PaymentTerms.DEFAULT
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None
    project_id: Optional[str] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_window(self):
        if (self.window_start is None) != (self.window_end is None):
            raise ValueError("window_start and window_end must be given together")
        if self.window_start and self.window_start >= self.window_end:
            raise ValueError("window_start must be before window_end")
        return self


class DeliveredQuantity(BaseModel):
    line_index: int = Field(..., ge=0)
    quantity: Decimal = Field(..., ge=0)


class DeliveryRecord(BaseModel):
    photos: List[str] = Field(..., min_length=1)
    quantities: List[DeliveredQuantity] = Field(..., min_length=1)
    notes: Optional[str] = None
    location: Optional[dict] = None
    is_partial: bool = False


class ConfirmReceiptRequest(BaseModel):
    delivery_event_id: Optional[str] = None


class DisputeRequest(BaseModel):
    category: Literal[DISPUTE_CATEGORIES]
    reason: str = Field(..., min_length=1, max_length=2000)
    evidence_photos: List[str] = Field(..., min_length=1)
    delivery_event_id: Optional[str] = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
