# tests/api/v1/test_realtime_api.py

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from buildapp.api.v1.endpoints.realtime import initial_channels, resolve_subscription
from buildapp.core.errors import NotFoundError, ValidationError
from buildapp.schemas.token import TokenPayload
from tests.utils.auth import make_token
from tests.utils.factories import create_booking, create_order, create_rental_tool, create_supplier


class FakePubSub:
    def __init__(self):
        self.channels = set()
        self.closed = False

    async def subscribe(self, *channels):
        self.channels.update(channels)

    async def unsubscribe(self, *channels):
        if channels:
            self.channels.difference_update(channels)
        else:
            self.channels.clear()

    async def get_message(self, ignore_subscribe_messages=True, timeout=1.0):
        await asyncio.sleep(0.01)
        return None

    async def aclose(self):
        self.closed = True


class FakeAsyncRedis:
    def __init__(self):
        self.pubsubs = []

    def pubsub(self):
        pubsub = FakePubSub()
        self.pubsubs.append(pubsub)
        return pubsub


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeAsyncRedis()
    monkeypatch.setattr(
        "buildapp.api.v1.endpoints.realtime.get_async_redis_client", lambda: fake
    )
    return fake


BUYER = TokenPayload(sub="user_buyer", role="buyer", exp=9999999999)
SUPPLIER = TokenPayload(sub="user_supplier", role="supplier", exp=9999999999)


def test_initial_channels():
    assert initial_channels(BUYER) == ["user:user_buyer", "buyers"]
    assert initial_channels(SUPPLIER) == ["user:user_supplier", "suppliers"]


def test_resolve_order_subscription_for_parties_only(db_session):
    supplier = create_supplier(db_session)
    order = create_order(db_session, supplier)
    message = {"type": "subscribe:order", "order_number": order.order_number}

    assert resolve_subscription(db_session, BUYER, message) == (
        "subscribe", [f"order:{order.order_number}"]
    )
    action, _ = resolve_subscription(db_session, SUPPLIER, {**message, "type": "unsubscribe:order"})
    assert action == "unsubscribe"
    stranger = TokenPayload(sub="user_stranger", role="buyer", exp=9999999999)
    with pytest.raises(NotFoundError):
        resolve_subscription(db_session, stranger, message)


def test_resolve_rental_and_list_subscriptions(db_session):
    supplier = create_supplier(db_session)
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))

    assert resolve_subscription(
        db_session, BUYER, {"type": "subscribe:rental", "booking_number": booking.booking_number}
    ) == ("subscribe", [f"rental:{booking.booking_number}"])
    assert resolve_subscription(db_session, SUPPLIER, {"type": "subscribe:orders"}) == (
        "subscribe", ["orders:list"]
    )


@pytest.mark.parametrize("message", [
    {"type": "subscribe:order"},
    {"type": "subscribe:everything"},
    ["not", "an", "object"],
])
def test_resolve_rejects_malformed_messages(db_session, message):
    with pytest.raises(ValidationError):
        resolve_subscription(db_session, BUYER, message)


def test_connection_without_valid_token_is_refused(test_client: TestClient, fake_redis):
    with pytest.raises(WebSocketDisconnect) as exc:
        with test_client.websocket_connect("/api/v1/ws?token=garbage"):
            pass
    assert exc.value.code == 1008
    assert fake_redis.pubsubs == []


def test_subscribe_and_unsubscribe_order(db_session, test_client: TestClient, fake_redis):
    supplier = create_supplier(db_session)
    order = create_order(db_session, supplier)
    token = make_token("user_buyer", "buyer")

    with test_client.websocket_connect(f"/api/v1/ws?token={token}") as websocket:
        connected = websocket.receive_json()
        assert connected == {
            "event": "connected", "data": {"channels": ["user:user_buyer", "buyers"]}
        }

        websocket.send_json({"type": "subscribe:order", "order_number": order.order_number})
        assert websocket.receive_json() == {
            "event": "subscribed", "data": {"channels": [f"order:{order.order_number}"]}
        }
        assert f"order:{order.order_number}" in fake_redis.pubsubs[0].channels

        websocket.send_json({"type": "unsubscribe:order", "order_number": order.order_number})
        assert websocket.receive_json()["event"] == "unsubscribed"

        websocket.send_json({"type": "subscribe:order", "order_number": "ORD-000000-00000"})
        error = websocket.receive_json()
        assert error["event"] == "error"
        assert error["data"]["code"] == "not_found"

        websocket.send_text("not json")
        assert websocket.receive_json()["data"]["code"] == "validation_error"

    assert fake_redis.pubsubs[0].closed is True
