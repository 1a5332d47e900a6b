from jose import jwt

from buildapp.core.config import settings
from buildapp.schemas.token import TokenPayload


def make_token(user_id: str, role: str = "buyer", exp: int = 9999999999) -> str:
    payload = TokenPayload(sub=user_id, role=role, exp=exp)
    return jwt.encode(payload.model_dump(), settings.JWT_SECRET, algorithm="HS256")


def get_user_authentication_headers(user_id: str = "user_buyer", role: str = "buyer") -> dict[str, str]:
    """
    Generates a valid JWT token and authentication headers for a test user.
    """
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}
