"""Tests for EventNotifier publishing."""
import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

from buildapp.services.event_notifier import (
    EventNotifier,
    order_channel,
    rental_channel,
    user_channel,
)


class TestEventNotifier:
    def setup_method(self):
        self.client = MagicMock()
        self.notifier = EventNotifier(client=self.client)

    def test_publishes_serialized_payload_to_each_channel(self):
        delivered = self.notifier.emit(
            "order:created",
            {
                "order_number": "ORD-202603-00001",
                "grand_total": Decimal("140.00"),
                "at": datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
            },
            ["user:u1", "order:ORD-202603-00001", "user:u1"],
        )

        assert delivered == ["user:u1", "order:ORD-202603-00001"]
        assert self.client.publish.call_count == 2
        channel, payload = self.client.publish.call_args_list[0].args
        body = json.loads(payload)
        assert channel == "user:u1"
        assert body["event"] == "order:created"
        assert body["data"]["grand_total"] == 140.0
        assert body["data"]["at"] == "2026-03-02T09:00:00+00:00"
        assert "emitted_at" in body

    def test_publish_failure_is_swallowed(self):
        self.client.publish.side_effect = [ConnectionError("redis down"), 1]

        delivered = self.notifier.emit("rfq:created", {"rfq_id": "rfq_1"}, ["a", "b"])

        assert delivered == ["b"]

    def test_to_user_skips_missing_user(self):
        assert self.notifier.to_user(None, "rfqs:list-updated", {}) == []
        self.client.publish.assert_not_called()

        self.notifier.to_user("u2", "rfqs:list-updated", {"rfq_id": "rfq_1"})
        assert self.client.publish.call_args.args[0] == "user:u2"

    def test_channel_names(self):
        assert user_channel("u1") == "user:u1"
        assert order_channel("ORD-1") == "order:ORD-1"
        assert rental_channel("RNT-1") == "rental:RNT-1"
