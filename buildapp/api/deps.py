# buildapp/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from buildapp.core.config import settings
from buildapp.core.errors import AuthorizationError, NotFoundError
from buildapp.crud import crud_party
from buildapp.db.session import get_db
from buildapp.models.supplier import Supplier
from buildapp.schemas.token import TokenPayload

# Tokens are issued by the identity service; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")


def decode_token(token: str) -> TokenPayload:
    """Raises JWTError or ValueError for invalid, expired or malformed tokens."""
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    return TokenPayload(**payload)


def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenPayload:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        return decode_token(token)
    except (JWTError, ValueError):
        raise credentials_exception


def get_current_buyer(
    current_user: TokenPayload = Depends(get_current_user),
) -> TokenPayload:
    if current_user.role != "buyer":
        raise AuthorizationError("This action is only available to buyers")
    return current_user


def get_current_supplier(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user),
) -> Supplier:
    if current_user.role != "supplier":
        raise AuthorizationError("This action is only available to suppliers")
    supplier = crud_party.get_supplier_by_user(db, current_user.sub)
    if supplier is None:
        raise NotFoundError("Supplier profile not found")
    return supplier


def get_optional_supplier(
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(get_current_user),
) -> Optional[Supplier]:
    """The caller's supplier profile when they sign in as a supplier."""
    if current_user.role != "supplier":
        return None
    return crud_party.get_supplier_by_user(db, current_user.sub)


PAGING_KEYS = {"sort", "order", "page", "page_size"}


class ListParams:
    """
    Query-string filters plus paging for list endpoints. Every other query
    parameter is passed through as a filter and checked against the list's
    allow-list.
    """

    def __init__(
        self,
        request: Request,
        sort: Optional[str] = None,
        order: Optional[str] = Query(None, pattern="^(asc|desc)$"),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=50),
    ):
        self.filters = {
            key: value
            for key, value in request.query_params.items()
            if key not in PAGING_KEYS
        }
        self.sort = sort
        self.order = order
        self.page = page
        self.page_size = page_size

    def as_kwargs(self) -> dict:
        return {
            "params": self.filters,
            "sort": self.sort,
            "order": self.order,
            "page": self.page,
            "page_size": self.page_size,
        }
