# buildapp/background_tasks/trust_tasks.py
"""
Background task for the trust-metrics cache.
"""
import logging

from buildapp.services.trust_metrics import get_trust_metrics_reader

logger = logging.getLogger(__name__)


def purge_trust_metrics(reader=None):
    """
    Background task: drop cached trust metrics past their TTL.

    Returns: Number of entries removed
    """
    reader = reader or get_trust_metrics_reader()
    try:
        removed = reader.cache.cleanup_expired()
        if removed > 0:
            logger.info(f"Purged {removed} expired trust metric entries")
        return removed

    except Exception as e:
        logger.error(f"Error in purge_trust_metrics task: {str(e)}", exc_info=True)
        return 0
