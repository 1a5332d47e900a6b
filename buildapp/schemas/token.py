# buildapp/schemas/token.py
from typing import Literal

from pydantic import BaseModel


class TokenPayload(BaseModel):
    sub: str  # user id
    role: Literal["buyer", "supplier"]
    exp: int

    model_config = {"from_attributes": True}
