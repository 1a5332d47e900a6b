# buildapp/schemas/offer.py
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator


class PaymentTerms:
    ALL = ("cod", "net_7", "net_15", "net_30", "prepaid")
    DEFAULT = "cod"


class OfferLinePrice(BaseModel):
    line_index: Optional[int] = Field(None, ge=0)
    unit_price: Decimal = Field(..., ge=0)
    notes: Optional[str] = None


class OfferSubmit(BaseModel):
    line_prices: List[OfferLinePrice] = Field(..., min_length=1)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    delivery_window_start: Optional[datetime] = None
    delivery_window_end: Optional[datetime] = None
    payment_terms: str = PaymentTerms.DEFAULT
    notes: Optional[str] = None
    expires_at: Optional[datetime] = None
    # Only set when the supplier deliberately changes the offer's status
    status: Optional[Literal["pending", "withdrawn"]] = None

    @model_validator(mode="after")
    def validate_window(self):
        if self.delivery_window_start and self.delivery_window_end:
            if self.delivery_window_start >= self.delivery_window_end:
                raise ValueError(
                    "delivery_window_start must be before delivery_window_end"
                )
        return self


class OfferReject(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)
