# buildapp/services/event_notifier.py
"""
Real-time event publishing over Redis pub/sub.

Services call `emit` only after their transaction commits. Publishing is
best-effort: a failed publish is logged and never reaches the caller.
"""
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional

from buildapp.db.redis import redis_client

logger = logging.getLogger(__name__)

SUPPLIERS_CHANNEL = "suppliers"
BUYERS_CHANNEL = "buyers"
ORDERS_LIST_CHANNEL = "orders:list"


def user_channel(user_id: str) -> str:
    return f"user:{user_id}"


def order_channel(order_number: str) -> str:
    return f"order:{order_number}"


def rental_channel(booking_number: str) -> str:
    return f"rental:{booking_number}"


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


class EventNotifier:
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        return self._client if self._client is not None else redis_client

    def emit(self, event: str, data: dict, channels: Iterable[str]) -> List[str]:
        """Publish one event to each channel. Returns the channels that accepted it."""
        payload = json.dumps(
            {
                "event": event,
                "data": data,
                "emitted_at": datetime.now(timezone.utc).isoformat(),
            },
            default=_json_default,
        )
        delivered = []
        for channel in dict.fromkeys(channels):
            try:
                self.client.publish(channel, payload)
                delivered.append(channel)
            except Exception as e:
                logger.error(
                    f"Failed to publish {event} to {channel}: {e}", exc_info=True
                )
        return delivered

    def to_user(self, user_id: Optional[str], event: str, data: dict) -> List[str]:
        if not user_id:
            return []
        return self.emit(event, data, [user_channel(user_id)])


notifier = EventNotifier()


def get_notifier() -> EventNotifier:
    return notifier
