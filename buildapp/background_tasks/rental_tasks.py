# buildapp/background_tasks/rental_tasks.py
"""
Background tasks for rental bookings.
"""
import logging

from buildapp.db.session import SessionLocal
from buildapp.services import rental_lifecycle
from buildapp.services.event_notifier import get_notifier

logger = logging.getLogger(__name__)


def detect_overdue_rentals(session_factory=None, notifier=None):
    """
    Background task: notify both parties about active rentals past their
    end date that have not been returned.

    Returns: Number of overdue bookings
    """
    db = (session_factory or SessionLocal)()
    try:
        overdue = rental_lifecycle.detect_overdue(db, notifier or get_notifier())
        return len(overdue)

    except Exception as e:
        logger.error(f"Error in detect_overdue_rentals task: {str(e)}", exc_info=True)
        return 0

    finally:
        db.close()
