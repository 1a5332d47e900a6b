# buildapp/background_tasks/order_tasks.py
"""
Background tasks for order fulfilment.
"""
import logging

from buildapp.db.session import SessionLocal
from buildapp.services import order_fulfillment
from buildapp.services.event_notifier import get_notifier

logger = logging.getLogger(__name__)


def auto_complete_orders(session_factory=None, notifier=None):
    """
    Background task: complete delivered orders whose buyer confirmation
    window has lapsed.

    Returns: Number of orders completed
    """
    db = (session_factory or SessionLocal)()
    try:
        completed = order_fulfillment.auto_complete_due(db, notifier or get_notifier())
        if completed:
            logger.info(f"Auto-completed {len(completed)} order(s): {', '.join(completed)}")
        return len(completed)

    except Exception as e:
        logger.error(f"Error in auto_complete_orders task: {str(e)}", exc_info=True)
        return 0

    finally:
        db.close()
