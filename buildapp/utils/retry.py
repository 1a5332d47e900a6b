# buildapp/utils/retry.py
import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_random,
)

from buildapp.core.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(orig or exc).lower()


def _is_unique_conflict(exc: BaseException) -> bool:
    return isinstance(exc, IntegrityError) and is_unique_violation(exc)


def retry_on_conflict(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    max_jitter: float = 0.1,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation` until it stops raising unique-constraint violations.

    `operation` must undo its own partial work on failure (e.g. run inside
    a SAVEPOINT) so that it can simply be called again. Other integrity
    errors propagate untouched. After the last attempt a ConflictError is
    raised.
    """

    def _log_conflict(retry_state) -> None:
        logger.warning(
            f"Unique conflict during {description} "
            f"(attempt {retry_state.attempt_number}/{attempts})"
        )

    retrying = Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_random(0, max_jitter),
        retry=retry_if_exception(_is_unique_conflict),
        before_sleep=_log_conflict,
        sleep=sleep,
    )
    try:
        return retrying(operation)
    except RetryError:
        raise ConflictError(
            f"Could not complete {description} after {attempts} attempts, please retry"
        )
