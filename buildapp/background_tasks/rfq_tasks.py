# buildapp/background_tasks/rfq_tasks.py
"""
Background tasks for RFQ and offer expiry.
"""
import logging

from buildapp.db.session import SessionLocal
from buildapp.services import offer_ledger, rfq_fanout

logger = logging.getLogger(__name__)


def expire_offers(session_factory=None):
    """
    Background task: mark pending offers past their expiry as expired.

    Returns: Number of offers expired
    """
    db = (session_factory or SessionLocal)()
    try:
        count = offer_ledger.expire_overdue(db)
        if count > 0:
            logger.info(f"Auto-expired {count} offers")
        return count

    except Exception as e:
        logger.error(f"Error in expire_offers task: {str(e)}", exc_info=True)
        return 0

    finally:
        db.close()


def expire_rfqs(session_factory=None):
    """
    Background task: mark active RFQs past their expiry as expired.

    Returns: Number of RFQs expired
    """
    db = (session_factory or SessionLocal)()
    try:
        count = rfq_fanout.expire_overdue(db)
        if count > 0:
            logger.info(f"Auto-expired {count} RFQs")
        return count

    except Exception as e:
        logger.error(f"Error in expire_rfqs task: {str(e)}", exc_info=True)
        return 0

    finally:
        db.close()
