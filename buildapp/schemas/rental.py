# buildapp/schemas/rental.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from buildapp.schemas.offer import PaymentTerms


class RentalBookingCreate(BaseModel):
    rental_tool_id: str
    start_date: datetime
    end_date: datetime
    pickup_or_delivery: Literal["pickup", "delivery"] = "pickup"
    delivery_address: Optional[str] = None
    project_id: Optional[str] = None
    payment_terms: str = PaymentTerms.DEFAULT
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class HandoverRequest(BaseModel):
    photos: List[str] = Field(..., min_length=1)
    condition_notes: Optional[str] = None


class ReturnRequest(BaseModel):
    photos: List[str] = Field(..., min_length=1)
    condition_notes: Optional[str] = None


class RentalCancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class RentalDisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)
