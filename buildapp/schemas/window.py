# buildapp/schemas/window.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, model_validator


class WindowProposalRequest(BaseModel):
    window_start: datetime
    window_end: datetime
    note: Optional[str] = None

    @model_validator(mode="after")
    def validate_order(self):
        if self.window_start >= self.window_end:
            raise ValueError("window_start must be before window_end")
        return self
