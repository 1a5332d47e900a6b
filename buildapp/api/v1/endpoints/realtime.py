# buildapp/api/v1/endpoints/realtime.py
"""
WebSocket bridge to the Redis pub/sub channels the services publish to.

A connection is subscribed to its user channel and role group. Clients may
additionally follow single orders or rentals they are a party to:

    {"type": "subscribe:order", "order_number": "ORD-202601-00001"}
    {"type": "unsubscribe:order", "order_number": "..."}
    {"type": "subscribe:orders"}
    {"type": "subscribe:rental", "booking_number": "..."}
    {"type": "unsubscribe:rental", "booking_number": "..."}
"""
import asyncio
import json
import logging
from typing import List, Tuple

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from jose import JWTError
from sqlalchemy.orm import Session

from buildapp.api.deps import decode_token
from buildapp.core.errors import NotFoundError, TradeError, ValidationError
from buildapp.crud import crud_order, crud_party, crud_rental
from buildapp.db.redis import get_async_redis_client
from buildapp.db.session import get_db
from buildapp.schemas.token import TokenPayload
from buildapp.services import order_fulfillment, rental_lifecycle
from buildapp.services.event_notifier import (
    BUYERS_CHANNEL,
    ORDERS_LIST_CHANNEL,
    SUPPLIERS_CHANNEL,
    order_channel,
    rental_channel,
    user_channel,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def initial_channels(user: TokenPayload) -> List[str]:
    group = SUPPLIERS_CHANNEL if user.role == "supplier" else BUYERS_CHANNEL
    return [user_channel(user.sub), group]


def resolve_subscription(db: Session, user: TokenPayload, message: dict) -> Tuple[str, List[str]]:
    """Map a client message to ("subscribe" | "unsubscribe", channels)."""
    kind = message.get("type") if isinstance(message, dict) else None
    if kind == "subscribe:orders":
        return "subscribe", [ORDERS_LIST_CHANNEL]

    if kind in ("subscribe:order", "unsubscribe:order"):
        ref = message.get("order_number")
        if not ref:
            raise ValidationError("order_number is required")
        order = crud_order.get_by_ref(db, ref)
        supplier = crud_party.get_supplier_by_user(db, user.sub)
        if order is None or order_fulfillment.party_for(order, user.sub, supplier) is None:
            raise NotFoundError("Order not found")
        return kind.split(":")[0], [order_channel(order.order_number)]

    if kind in ("subscribe:rental", "unsubscribe:rental"):
        ref = message.get("booking_number")
        if not ref:
            raise ValidationError("booking_number is required")
        booking = crud_rental.get_by_ref(db, ref)
        supplier = crud_party.get_supplier_by_user(db, user.sub)
        if booking is None or rental_lifecycle.party_for(booking, user.sub, supplier) is None:
            raise NotFoundError("Rental booking not found")
        return kind.split(":")[0], [rental_channel(booking.booking_number)]

    raise ValidationError(f"Unknown message type: {kind}")


async def _forward(pubsub, websocket: WebSocket) -> None:
    while True:
        message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
        if message is None:
            continue
        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode()
        await websocket.send_text(data)


@router.websocket("/ws")
async def realtime_updates(
    websocket: WebSocket,
    token: str = Query(None),
    db: Session = Depends(get_db),
):
    try:
        user = decode_token(token or "")
    except (JWTError, ValueError):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    pubsub = get_async_redis_client().pubsub()
    channels = initial_channels(user)
    await pubsub.subscribe(*channels)
    await websocket.send_json({"event": "connected", "data": {"channels": channels}})
    forwarder = asyncio.create_task(_forward(pubsub, websocket))
    logger.info(f"Realtime connection opened for {user.role} {user.sub}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                action, targets = resolve_subscription(db, user, json.loads(raw))
            except json.JSONDecodeError:
                await websocket.send_json(
                    {"event": "error", "data": {"code": "validation_error",
                                                "message": "Messages must be JSON"}}
                )
                continue
            except TradeError as e:
                await websocket.send_json(
                    {"event": "error", "data": {"code": e.code, "message": e.message}}
                )
                continue

            if action == "subscribe":
                await pubsub.subscribe(*targets)
            else:
                await pubsub.unsubscribe(*targets)
            await websocket.send_json({"event": f"{action}d", "data": {"channels": targets}})
    except WebSocketDisconnect:
        logger.info(f"Realtime connection closed for {user.role} {user.sub}")
    finally:
        forwarder.cancel()
        await pubsub.unsubscribe()
        await pubsub.aclose()
