# buildapp/schemas/rfq.py
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

MAX_RFQ_LINES = 50
MAX_RFQ_SUPPLIERS = 5


class RFQLineItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit: str = Field("each", min_length=1, max_length=50)
    catalog_entry_id: Optional[str] = None
    spec_notes: Optional[str] = Field(None, max_length=2000)


class RFQCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    line_items: List[RFQLineItem] = Field(..., min_length=1, max_length=MAX_RFQ_LINES)
    supplier_ids: List[str] = Field(..., min_length=1)
    project_id: Optional[str] = None
    preferred_window_start: Optional[datetime] = None
    preferred_window_end: Optional[datetime] = None
    delivery_address: Optional[str] = None
    additional_notes: Optional[str] = None
    expiry_days: Optional[int] = Field(None, ge=1, le=30)

    @model_validator(mode="after")
    def validate_window(self):
        if self.preferred_window_start and self.preferred_window_end:
            if self.preferred_window_start >= self.preferred_window_end:
                raise ValueError(
                    "preferred_window_start must be before preferred_window_end"
                )
        return self
