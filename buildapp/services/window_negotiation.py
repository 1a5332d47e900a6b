# buildapp/services/window_negotiation.py
"""
Propose / counter / accept / reject exchange for delivery, pickup and
handover windows.

The proposal state (proposed_by, proposal_status, proposed_window_*) sits
on an Order or a RentalBooking next to, not inside, the parent's status.
Only the party who did not make the current proposal may answer it, and an
answered proposal cannot be answered again.

    none/rejected/accepted --propose--> pending(by=X)
    pending(by=X) --counter by Y--> pending(by=Y)
    pending(by=X) --accept by Y--> accepted   (promised := proposed)
    pending(by=X) --reject by Y--> rejected   (promised unchanged)
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from buildapp.core.errors import AuthorizationError, ConflictError, ValidationError
from buildapp.db.transaction import atomic
from buildapp.services import order_fulfillment, rental_lifecycle
from buildapp.services.event_notifier import (
    EventNotifier,
    order_channel,
    rental_channel,
    user_channel,
)
from buildapp.utils.state_machine import Actor
from buildapp.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)

PARTIES = ("buyer", "supplier")


@dataclass(frozen=True)
class NegotiationKind:
    name: str
    negotiable_statuses: FrozenSet[str]
    lock: Callable
    confirm: Callable  # (db, parent, actor, now, note) -> (old, new)
    number: Callable
    entity_channel: Callable
    on_status_change: Callable


def _order_confirm(db, order, actor, now, note):
    return order_fulfillment.fire(db, order, "confirm", actor, now, note)


def _rental_confirm(db, booking, actor, now, note):
    return rental_lifecycle.fire(booking, "confirm", actor, now)


def _rental_status_changed(notifier, booking, old_status, new_status, event):
    notifier.emit(
        "rental:status-changed",
        {
            "booking_id": booking.id,
            "booking_number": booking.booking_number,
            "old_status": old_status,
            "status": new_status,
            "event": event,
        },
        rental_lifecycle.booking_channels(booking),
    )


ORDER_WINDOWS = NegotiationKind(
    name="order",
    negotiable_statuses=frozenset({"pending", "confirmed", "in_transit"}),
    lock=order_fulfillment.get_locked,
    confirm=_order_confirm,
    number=lambda order: order.order_number,
    entity_channel=lambda order: order_channel(order.order_number),
    on_status_change=order_fulfillment.broadcast_status,
)

RENTAL_WINDOWS = NegotiationKind(
    name="rental",
    negotiable_statuses=frozenset({"pending", "confirmed", "active"}),
    lock=rental_lifecycle.get_locked,
    confirm=_rental_confirm,
    number=lambda booking: booking.booking_number,
    entity_channel=lambda booking: rental_channel(booking.booking_number),
    on_status_change=_rental_status_changed,
)


# ── Proposal state (no I/O) ───────────────────────────────────────────

def _check_party(actor: Actor) -> None:
    if actor.role not in PARTIES:
        raise AuthorizationError("Only the buyer or the supplier can negotiate a window")


def _check_window(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    start, end = as_utc(start), as_utc(end)
    if start is None or end is None or start >= end:
        raise ValidationError("window_start must be before window_end")
    return start, end


def _require_answerable(parent, actor: Actor, action: str) -> None:
    if parent.proposal_status != "pending":
        raise ConflictError(
            f"Cannot {action} window: no pending proposal "
            f"(proposal status is '{parent.proposal_status}')",
            details={"proposal_status": parent.proposal_status, "requested": action},
        )
    if parent.proposed_by == actor.role:
        raise AuthorizationError(f"You cannot {action} your own proposal")


def apply_proposal(parent, actor: Actor, start: datetime, end: datetime) -> None:
    _check_party(actor)
    start, end = _check_window(start, end)
    parent.proposed_by = actor.role
    parent.proposal_status = "pending"
    parent.proposed_window_start = start
    parent.proposed_window_end = end


def apply_counter(parent, actor: Actor, start: datetime, end: datetime) -> None:
    _check_party(actor)
    if parent.proposed_by is None:
        raise ConflictError("There is no proposal to counter")
    if parent.proposed_by == actor.role:
        raise AuthorizationError("You cannot counter your own proposal")
    apply_proposal(parent, actor, start, end)


def apply_accept(parent, actor: Actor, now: datetime) -> None:
    _check_party(actor)
    _require_answerable(parent, actor, "accept")
    parent.promised_window_start = parent.proposed_window_start
    parent.promised_window_end = parent.proposed_window_end
    parent.proposal_status = "accepted"
    parent.window_agreed_at = now


def apply_reject(parent, actor: Actor) -> None:
    _check_party(actor)
    _require_answerable(parent, actor, "reject")
    parent.proposal_status = "rejected"


# ── Persisted operations ──────────────────────────────────────────────

def _counterpart_channels(kind: NegotiationKind, parent, actor: Actor) -> List[str]:
    if actor.role == "buyer":
        targets = [user_channel(parent.supplier.user_id)] if parent.supplier else []
    else:
        targets = [user_channel(parent.buyer_id)]
    return targets + [kind.entity_channel(parent)]


def _proposal_data(kind: NegotiationKind, parent) -> dict:
    return {
        f"{kind.name}_id": parent.id,
        f"{kind.name}_number": kind.number(parent),
        "status": parent.status,
        "proposal_status": parent.proposal_status,
        "proposed_by": parent.proposed_by,
        "proposed_window_start": parent.proposed_window_start,
        "proposed_window_end": parent.proposed_window_end,
        "promised_window_start": parent.promised_window_start,
        "promised_window_end": parent.promised_window_end,
    }


def _negotiate(
    db: Session,
    notifier: EventNotifier,
    kind: NegotiationKind,
    parent,
    actor: Actor,
    action: str,
    step: Callable,
    event: str,
    now: Optional[datetime],
):
    now = now or utcnow()
    status_change = None
    with atomic(db, f"{kind.name} window {action}"):
        parent = kind.lock(db, parent)
        if parent.status not in kind.negotiable_statuses:
            raise ConflictError(
                f"Cannot negotiate a window on a {kind.name} in status '{parent.status}'",
                details={"current_status": parent.status, "requested": action},
            )
        step(parent, now)
        if action == "accept" and parent.status == "pending":
            status_change = kind.confirm(db, parent, actor, now, "window agreed")

    db.refresh(parent)
    logger.info(
        f"{kind.name.capitalize()} {kind.number(parent)}: window {action} by {actor.role} "
        f"(proposal {parent.proposal_status})"
    )
    notifier.emit(
        event,
        {**_proposal_data(kind, parent), "action": action},
        _counterpart_channels(kind, parent, actor),
    )
    if status_change is not None:
        kind.on_status_change(notifier, parent, status_change[0], status_change[1], "confirm")
    return parent


def propose(db, notifier, kind, parent, *, actor, window_start, window_end, now=None):
    return _negotiate(
        db, notifier, kind, parent, actor, "propose",
        lambda p, at: apply_proposal(p, actor, window_start, window_end),
        f"{kind.name}:window-proposed", now,
    )


def counter_propose(db, notifier, kind, parent, *, actor, window_start, window_end, now=None):
    return _negotiate(
        db, notifier, kind, parent, actor, "counter",
        lambda p, at: apply_counter(p, actor, window_start, window_end),
        f"{kind.name}:window-proposed", now,
    )


def accept(db, notifier, kind, parent, *, actor, now=None):
    return _negotiate(
        db, notifier, kind, parent, actor, "accept",
        lambda p, at: apply_accept(p, actor, at),
        f"{kind.name}:window-accepted", now,
    )


def reject(db, notifier, kind, parent, *, actor, now=None):
    return _negotiate(
        db, notifier, kind, parent, actor, "reject",
        lambda p, at: apply_reject(p, actor),
        f"{kind.name}:updated", now,
    )


def confirm_scheduled_time(db, notifier, *, order, actor, now=None):
    """Supplier confirms the window the buyer picked at checkout."""
    now = now or utcnow()
    if actor.role != "supplier":
        raise AuthorizationError("Only the supplier can confirm the scheduled time")

    with atomic(db, "scheduled time confirmation"):
        order = order_fulfillment.get_locked(db, order)
        if order.promised_window_start is None or order.promised_window_end is None:
            raise ConflictError("Order has no scheduled time to confirm")
        if order.status != "pending":
            raise ConflictError(
                f"Cannot confirm scheduled time for order in status '{order.status}'",
                details={"current_status": order.status, "requested": "confirm"},
            )
        order.window_agreed_at = now
        old_status, new_status = order_fulfillment.fire(
            db, order, "confirm", actor, now, "scheduled time confirmed"
        )

    db.refresh(order)
    order_fulfillment.broadcast_status(notifier, order, old_status, new_status, "confirm")
    return order
