# buildapp/services/order_fulfillment.py
"""
Order lifecycle from creation to a terminal outcome.

    pending -> confirmed -> in_transit -> delivered -> completed | disputed
    pending | confirmed -> cancelled

Every status change goes through ORDER_TRANSITIONS and leaves a row in
order_status_history. The scheduler's auto-completion calls the very same
`confirm_receipt` a buyer triggers by hand.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from buildapp.core.config import settings
from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    TradeError,
    ValidationError,
)
from buildapp.crud import crud_order
from buildapp.db.transaction import atomic
from buildapp.models.confirmation import Confirmation
from buildapp.models.delivery_event import DeliveryEvent
from buildapp.models.order import Order
from buildapp.models.order_status_history import OrderStatusHistory
from buildapp.schemas.order import DeliveryRecord, DisputeRequest
from buildapp.services.event_notifier import (
    ORDERS_LIST_CHANNEL,
    EventNotifier,
    order_channel,
    user_channel,
)
from buildapp.utils.state_machine import (
    SYSTEM,
    Actor,
    TransitionContext,
    TransitionTable,
)
from buildapp.utils.time import utcnow

logger = logging.getLogger(__name__)


# ── Guards & effects ──────────────────────────────────────────────────

def _roles(*allowed):
    def guard(order: Order, ctx: TransitionContext) -> None:
        if ctx.actor.role not in allowed:
            raise AuthorizationError(
                f"A {ctx.actor.role} cannot perform this action on an order"
            )
    return guard


def _stamp(attr: str):
    def effect(order: Order, ctx: TransitionContext) -> None:
        setattr(order, attr, ctx.now)
    return effect


def _pickup_by_buyer(order: Order, ctx: TransitionContext) -> None:
    _roles("buyer")(order, ctx)
    if order.pickup_or_delivery != "pickup":
        raise ConflictError("Only pickup orders can be confirmed as collected")


def _receipt_allowed(order: Order, ctx: TransitionContext) -> None:
    _roles("buyer", "system")(order, ctx)
    if ctx.actor.is_system:
        deadline = order.confirmation_deadline
        if deadline is None or ctx.now < deadline:
            raise ConflictError("Confirmation deadline has not passed yet")


def _reason_required(order: Order, ctx: TransitionContext) -> None:
    _roles("buyer", "supplier")(order, ctx)
    if not (ctx.payload.get("reason") or "").strip():
        raise ValidationError("A cancellation reason is required")


def _start_confirmation_clock(order: Order, ctx: TransitionContext) -> None:
    order.delivered_at = ctx.now
    order.confirmation_deadline = ctx.now + timedelta(
        hours=settings.ORDER_CONFIRMATION_WINDOW_HOURS
    )


def _record_cancellation(order: Order, ctx: TransitionContext) -> None:
    order.cancelled_at = ctx.now
    order.cancellation_reason = ctx.payload["reason"].strip()


ORDER_TRANSITIONS = (
    TransitionTable("order")
    .add(["pending"], "confirm", "confirmed", effects=[_stamp("confirmed_at")])
    .add(["confirmed"], "start_fulfillment", "in_transit", guard=_roles("supplier"))
    .add(["in_transit"], "record_delivery", "delivered",
         guard=_roles("supplier"), effects=[_start_confirmation_clock])
    .add(["in_transit"], "confirm_pickup", "delivered",
         guard=_pickup_by_buyer, effects=[_start_confirmation_clock])
    .add(["delivered"], "confirm_receipt", "completed",
         guard=_receipt_allowed, effects=[_stamp("completed_at")])
    .add(["delivered"], "dispute", "disputed", guard=_roles("buyer"))
    .add(["pending", "confirmed"], "cancel", "cancelled",
         guard=_reason_required, effects=[_record_cancellation])
)


# ── Shared helpers ────────────────────────────────────────────────────

def record_history(
    db: Session,
    order: Order,
    old_status: Optional[str],
    new_status: str,
    event: str,
    actor: Actor,
    note: Optional[str] = None,
) -> None:
    db.add(OrderStatusHistory(
        order_id=order.id,
        old_status=old_status,
        new_status=new_status,
        event=event,
        actor_role=actor.role,
        actor_id=actor.id,
        note=note,
    ))


def fire(
    db: Session,
    order: Order,
    event: str,
    actor: Actor,
    now: datetime,
    note: Optional[str] = None,
    **payload,
) -> Tuple[str, str]:
    """Apply one transition inside the caller's transaction."""
    ctx = TransitionContext(actor=actor, now=now, payload=payload)
    old_status, new_status = ORDER_TRANSITIONS.apply(order, event, ctx)
    record_history(db, order, old_status, new_status, event, actor, note)
    return old_status, new_status


def order_channels(order: Order) -> List[str]:
    channels = [user_channel(order.buyer_id), order_channel(order.order_number)]
    if order.supplier is not None:
        channels.append(user_channel(order.supplier.user_id))
    return channels


def broadcast_created(notifier: EventNotifier, order: Order) -> None:
    data = {
        "order_id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "grand_total": order.grand_total,
    }
    notifier.emit("order:created", data, order_channels(order))
    notifier.emit("orders:list-updated", data, [ORDERS_LIST_CHANNEL])


def broadcast_status(
    notifier: EventNotifier, order: Order, old_status: str, new_status: str, event: str
) -> None:
    data = {
        "order_id": order.id,
        "order_number": order.order_number,
        "old_status": old_status,
        "status": new_status,
        "event": event,
    }
    notifier.emit("order:status-changed", data, order_channels(order))
    notifier.emit("orders:list-updated", data, [ORDERS_LIST_CHANNEL])


def _check_delivery_event(db: Session, order: Order, delivery_event_id: Optional[str]) -> None:
    if delivery_event_id is None:
        return
    event = db.get(DeliveryEvent, delivery_event_id)
    if event is None or event.order_id != order.id:
        raise NotFoundError("Delivery event not found for this order")


def get_locked(db: Session, order: Order) -> Order:
    locked = crud_order.get_by_ref(db, order.id, lock=True)
    if locked is None:
        raise NotFoundError("Order not found")
    return locked


def _transition(
    db: Session,
    notifier: EventNotifier,
    order: Order,
    event: str,
    actor: Actor,
    now: Optional[datetime],
    note: Optional[str] = None,
    before=None,
    **payload,
) -> Order:
    now = now or utcnow()
    with atomic(db, f"order {event}"):
        order = get_locked(db, order)
        # Fail on an illegal edge before any evidence row is written
        ORDER_TRANSITIONS.resolve(order.status, event)
        if before is not None:
            before(order, now)
        old_status, new_status = fire(db, order, event, actor, now, note, **payload)

    db.refresh(order)
    logger.info(
        f"Order {order.order_number}: {old_status} -> {new_status} "
        f"({event} by {actor.role} {actor.id or ''})".rstrip()
    )
    broadcast_status(notifier, order, old_status, new_status, event)
    return order


# ── Operations ────────────────────────────────────────────────────────

def start_fulfillment(
    db: Session, notifier: EventNotifier, *, order: Order, actor: Actor,
    now: Optional[datetime] = None,
) -> Order:
    """Supplier has dispatched the goods, or made them ready for pickup."""
    return _transition(db, notifier, order, "start_fulfillment", actor, now)


def record_delivery(
    db: Session,
    notifier: EventNotifier,
    *,
    order: Order,
    actor: Actor,
    data: DeliveryRecord,
    now: Optional[datetime] = None,
) -> Tuple[Order, DeliveryEvent]:
    """
    Store delivery evidence. A final (non-partial) event moves the order to
    delivered and starts the buyer's confirmation clock; a partial one
    leaves it in transit.
    """
    now = now or utcnow()
    if actor.role != "supplier":
        raise AuthorizationError("Only the supplier can record a delivery")
    for quantity in data.quantities:
        if quantity.line_index >= len(order.items or []):
            raise ValidationError(
                f"Delivered quantity refers to unknown order line {quantity.line_index}"
            )

    created = {}

    def _insert_event(locked: Order, at: datetime) -> None:
        event = DeliveryEvent(
            order_id=locked.id,
            recorded_by_role=actor.role,
            recorded_by_id=actor.id,
            photos=list(data.photos),
            quantities=[
                {"line_index": q.line_index, "quantity": str(q.quantity)}
                for q in data.quantities
            ],
            notes=data.notes,
            location=data.location,
            is_partial=data.is_partial,
            delivered_at=at,
        )
        db.add(event)
        db.flush()
        created["event"] = event

    if not data.is_partial:
        order = _transition(
            db, notifier, order, "record_delivery", actor, now, before=_insert_event
        )
        return order, created["event"]

    with atomic(db, "partial delivery"):
        order = get_locked(db, order)
        ORDER_TRANSITIONS.resolve(order.status, "record_delivery")
        _insert_event(order, now)

    db.refresh(order)
    notifier.emit(
        "order:updated",
        {
            "order_number": order.order_number,
            "status": order.status,
            "delivery_event_id": created["event"].id,
            "is_partial": True,
        },
        order_channels(order),
    )
    return order, created["event"]


def confirm_pickup(
    db: Session, notifier: EventNotifier, *, order: Order, actor: Actor,
    now: Optional[datetime] = None,
) -> Order:
    return _transition(db, notifier, order, "confirm_pickup", actor, now)


def confirm_receipt(
    db: Session,
    notifier: EventNotifier,
    *,
    order: Order,
    actor: Actor,
    now: Optional[datetime] = None,
    delivery_event_id: Optional[str] = None,
) -> Order:
    """Buyer accepts the delivery. Also the auto-completion path (actor=SYSTEM)."""

    def _insert_confirmation(locked: Order, at: datetime) -> None:
        _check_delivery_event(db, locked, delivery_event_id)
        db.add(Confirmation(
            order_id=locked.id,
            delivery_event_id=delivery_event_id,
            confirmation_type="confirm",
            confirmed_by_role=actor.role,
            confirmed_by_id=actor.id,
            created_at=at,
        ))

    note = "auto-completed after confirmation deadline" if actor.is_system else None
    return _transition(
        db, notifier, order, "confirm_receipt", actor, now,
        note=note, before=_insert_confirmation,
    )


def dispute(
    db: Session,
    notifier: EventNotifier,
    *,
    order: Order,
    actor: Actor,
    data: DisputeRequest,
    now: Optional[datetime] = None,
) -> Order:
    def _insert_dispute(locked: Order, at: datetime) -> None:
        _check_delivery_event(db, locked, data.delivery_event_id)
        db.add(Confirmation(
            order_id=locked.id,
            delivery_event_id=data.delivery_event_id,
            confirmation_type="dispute",
            confirmed_by_role=actor.role,
            confirmed_by_id=actor.id,
            dispute_category=data.category,
            dispute_reason=data.reason,
            evidence_photos=list(data.evidence_photos),
            created_at=at,
        ))

    return _transition(
        db, notifier, order, "dispute", actor, now,
        note=f"{data.category}: {data.reason}", before=_insert_dispute,
    )


def cancel(
    db: Session,
    notifier: EventNotifier,
    *,
    order: Order,
    actor: Actor,
    reason: str,
    now: Optional[datetime] = None,
) -> Order:
    return _transition(
        db, notifier, order, "cancel", actor, now, note=reason, reason=reason
    )


def auto_complete_due(
    db: Session, notifier: EventNotifier, now: Optional[datetime] = None
) -> List[str]:
    """Complete delivered orders whose confirmation deadline has passed."""
    now = now or utcnow()
    completed = []
    for order in crud_order.due_for_auto_completion(db, now):
        try:
            confirm_receipt(db, notifier, order=order, actor=SYSTEM, now=now)
            completed.append(order.order_number)
        except TradeError as e:
            # Another request got there first; the next run re-evaluates it.
            logger.warning(f"Auto-completion skipped for {order.order_number}: {e.message}")
    return completed


def party_for(order: Order, user_id: str, supplier) -> Optional[Actor]:
    """Which side of the order the caller is on, if any."""
    if order.buyer_id == user_id:
        return Actor(role="buyer", id=user_id)
    if supplier is not None and order.supplier_id == supplier.id:
        return Actor(role="supplier", id=supplier.id)
    return None
