# buildapp/core/errors.py
"""
Domain error taxonomy.

Services raise these; `buildapp.main` maps them to HTTP responses using the
`{success: false, error, message}` envelope.
"""
from typing import Any, Optional


class TradeError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(TradeError):
    """Malformed or missing input."""

    status_code = 400
    code = "validation_error"


class AuthorizationError(TradeError):
    """Caller's role or ownership does not permit the action."""

    status_code = 403
    code = "forbidden"


class NotFoundError(TradeError):
    status_code = 404
    code = "not_found"


class ConflictError(TradeError):
    """Illegal state transition, duplicate submission, or stale proposal."""

    status_code = 409
    code = "conflict"


class InternalError(TradeError):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
