# buildapp/db/transaction.py
import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from buildapp.core.errors import ConflictError, InternalError, TradeError
from buildapp.utils.retry import is_unique_violation, retry_on_conflict

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, operation: str):
    """
    Commit the block's writes as one transaction.

    Domain errors roll back and propagate unchanged. A unique violation
    becomes a ConflictError; any other storage failure is logged and
    surfaced as InternalError without database detail.
    """
    try:
        yield
        db.commit()
    except TradeError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            logger.info(f"Unique conflict during {operation}: {e.orig}")
            raise ConflictError(f"Conflicting concurrent request during {operation}")
        logger.error(f"Integrity failure during {operation}: {e}", exc_info=True)
        raise InternalError()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error during {operation}: {e}", exc_info=True)
        raise InternalError()


def insert_numbered(db: Session, obj, number_attr: str, generate, description: str):
    """
    Insert `obj` under a freshly generated unique number.

    Each attempt runs in a SAVEPOINT so a number collision only discards
    that attempt, leaving the rest of the surrounding transaction intact.
    """

    def _attempt():
        setattr(obj, number_attr, generate())
        with db.begin_nested():
            db.add(obj)
            db.flush()
        return obj

    return retry_on_conflict(_attempt, description=description)
