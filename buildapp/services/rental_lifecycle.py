# buildapp/services/rental_lifecycle.py
"""
Equipment rental bookings.

    pending -> confirmed -> active (handover) -> completed (return)
    pending | confirmed -> cancelled
    active | completed -> disputed

"overdue" is never stored: it is an active booking past its end date with
no return yet (RentalBooking.is_overdue).
"""
import logging
import math
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from buildapp.core.config import settings
from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from buildapp.crud import crud_party, crud_rental
from buildapp.db.transaction import atomic, insert_numbered
from buildapp.models.rental_booking import RentalBooking
from buildapp.models.rental_handover import RentalHandover
from buildapp.models.rental_return import RentalReturn
from buildapp.models.supplier import Supplier
from buildapp.schemas.rental import HandoverRequest, RentalBookingCreate, ReturnRequest
from buildapp.services.event_notifier import EventNotifier, rental_channel, user_channel
from buildapp.services.offer_ledger import normalize_payment_terms
from buildapp.utils.numbering import generate_booking_number
from buildapp.utils.pricing import SECONDS_PER_DAY, rental_duration_days, rental_total, to_money
from buildapp.utils.state_machine import Actor, TransitionContext, TransitionTable
from buildapp.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


def _roles(*allowed):
    def guard(booking: RentalBooking, ctx: TransitionContext) -> None:
        if ctx.actor.role not in allowed:
            raise AuthorizationError(
                f"A {ctx.actor.role} cannot perform this action on a rental"
            )
    return guard


def _handover_recorded(booking: RentalBooking, ctx: TransitionContext) -> None:
    if booking.handover is None:
        raise ConflictError("Rental cannot start before the handover is recorded")


def _return_recorded(booking: RentalBooking, ctx: TransitionContext) -> None:
    if booking.rental_return is None:
        raise ConflictError("Rental cannot complete before the return is recorded")


def _start_rental(booking: RentalBooking, ctx: TransitionContext) -> None:
    booking.actual_start_date = ctx.now


def _finish_rental(booking: RentalBooking, ctx: TransitionContext) -> None:
    booking.actual_end_date = ctx.payload["returned_at"]
    booking.late_return_fee = ctx.payload["late_fee"]


def _confirmed(booking: RentalBooking, ctx: TransitionContext) -> None:
    booking.confirmed_at = ctx.now


def _cancelled(booking: RentalBooking, ctx: TransitionContext) -> None:
    reason = (ctx.payload.get("reason") or "").strip()
    if not reason:
        raise ValidationError("A cancellation reason is required")
    booking.cancelled_at = ctx.now
    booking.cancellation_reason = reason


def _disputed(booking: RentalBooking, ctx: TransitionContext) -> None:
    booking.dispute_reason = ctx.payload.get("reason")


RENTAL_TRANSITIONS = (
    TransitionTable("rental")
    .add(["pending"], "confirm", "confirmed", effects=[_confirmed])
    .add(["confirmed"], "handover", "active",
         guard=_handover_recorded, effects=[_start_rental])
    .add(["active"], "return", "completed",
         guard=_return_recorded, effects=[_finish_rental])
    .add(["pending", "confirmed"], "cancel", "cancelled",
         guard=_roles("buyer", "supplier"), effects=[_cancelled])
    .add(["active", "completed"], "dispute", "disputed",
         guard=_roles("buyer"), effects=[_disputed])
)


def late_fee_for(booking: RentalBooking, returned_at: datetime) -> Tuple[Decimal, int]:
    """Fixed penalty when returned strictly after end_date. Returns (fee, days late)."""
    if returned_at <= booking.end_date:
        return Decimal("0.00"), 0
    days_late = math.ceil((returned_at - booking.end_date).total_seconds() / SECONDS_PER_DAY)
    return to_money(settings.RENTAL_LATE_RETURN_FEE), days_late


def booking_channels(booking: RentalBooking) -> List[str]:
    channels = [user_channel(booking.buyer_id), rental_channel(booking.booking_number)]
    if booking.supplier is not None:
        channels.append(user_channel(booking.supplier.user_id))
    return channels


def _broadcast(notifier: EventNotifier, booking: RentalBooking, name: str, **extra) -> None:
    data = {
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "status": booking.status,
        **extra,
    }
    notifier.emit(name, data, booking_channels(booking))


def fire(
    booking: RentalBooking, event: str, actor: Actor, now: datetime, **payload
) -> Tuple[str, str]:
    ctx = TransitionContext(actor=actor, now=now, payload=payload)
    return RENTAL_TRANSITIONS.apply(booking, event, ctx)


def get_locked(db: Session, booking: RentalBooking) -> RentalBooking:
    locked = crud_rental.get_by_ref(db, booking.id, lock=True)
    if locked is None:
        raise NotFoundError("Rental booking not found")
    return locked


def book(
    db: Session,
    notifier: EventNotifier,
    *,
    buyer_id: str,
    data: RentalBookingCreate,
    now: Optional[datetime] = None,
) -> RentalBooking:
    now = now or utcnow()
    start_date = as_utc(data.start_date)
    end_date = as_utc(data.end_date)
    if end_date <= now:
        raise ValidationError("Rental period must end in the future")

    tool = crud_party.get_rental_tool(db, data.rental_tool_id)
    if tool is None:
        raise NotFoundError("Rental tool not found")
    if not tool.is_active or not tool.is_available:
        raise ConflictError(f"{tool.name} is not available for rent")
    if not tool.direct_booking_available:
        raise ValidationError(f"{tool.name} cannot be booked directly")
    if not tool.supports(data.pickup_or_delivery):
        raise ValidationError(f"{tool.name} is not available for {data.pickup_or_delivery}")

    delivery_address = data.delivery_address
    if data.project_id:
        project = crud_party.get_project(db, data.project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if project.owner_id != buyer_id:
            raise AuthorizationError("You do not own this project")
        delivery_address = delivery_address or project.site_address
    if data.pickup_or_delivery == "delivery" and not delivery_address:
        raise ValidationError("Delivery rentals need a delivery address or a project site")

    days = rental_duration_days(start_date, end_date)
    total = rental_total(days, tool.day_rate, tool.week_rate)
    delivery_fee = (
        to_money(settings.RENTAL_DELIVERY_FEE)
        if data.pickup_or_delivery == "delivery"
        else Decimal("0.00")
    )

    with atomic(db, "rental booking"):
        booking = RentalBooking(
            buyer_id=buyer_id,
            supplier_id=tool.supplier_id,
            rental_tool_id=tool.id,
            project_id=data.project_id,
            start_date=start_date,
            end_date=end_date,
            rental_duration_days=days,
            day_rate=to_money(tool.day_rate),
            week_rate=to_money(tool.week_rate) if tool.week_rate is not None else None,
            total_rental_amount=total,
            deposit_amount=to_money(tool.deposit_amount),
            delivery_fee=delivery_fee,
            pickup_or_delivery=data.pickup_or_delivery,
            delivery_address=delivery_address if data.pickup_or_delivery == "delivery" else None,
            payment_terms=normalize_payment_terms(data.payment_terms),
            notes=data.notes,
            status="pending",
        )
        insert_numbered(
            db, booking, "booking_number", lambda: generate_booking_number(now),
            "booking number allocation",
        )

    db.refresh(booking)
    logger.info(
        f"Rental {booking.booking_number} booked by {buyer_id}: {days} day(s), "
        f"total {booking.total_rental_amount}"
    )
    _broadcast(notifier, booking, "rental:created")
    return booking


def _transition(
    db: Session,
    notifier: EventNotifier,
    booking: RentalBooking,
    event: str,
    actor: Actor,
    now: datetime,
    before=None,
    **payload,
) -> RentalBooking:
    with atomic(db, f"rental {event}"):
        booking = get_locked(db, booking)
        RENTAL_TRANSITIONS.resolve(booking.status, event)
        if before is not None:
            payload.update(before(booking) or {})
        old_status, new_status = fire(booking, event, actor, now, **payload)

    db.refresh(booking)
    logger.info(f"Rental {booking.booking_number}: {old_status} -> {new_status} ({event})")
    _broadcast(notifier, booking, "rental:status-changed", old_status=old_status, event=event)
    return booking


def confirm(
    db: Session, notifier: EventNotifier, *, booking: RentalBooking, actor: Actor,
    now: Optional[datetime] = None,
) -> RentalBooking:
    if actor.role != "supplier":
        raise AuthorizationError("Only the supplier can confirm a rental")
    return _transition(db, notifier, booking, "confirm", actor, now or utcnow())


def confirm_handover(
    db: Session,
    notifier: EventNotifier,
    *,
    booking: RentalBooking,
    actor: Actor,
    data: HandoverRequest,
    now: Optional[datetime] = None,
) -> RentalBooking:
    now = now or utcnow()
    if not data.photos:
        raise ValidationError("At least one handover photo is required")

    def _insert_handover(locked: RentalBooking):
        if locked.handover is not None:
            raise ConflictError("Handover has already been recorded")
        locked.handover = RentalHandover(
            confirmed_by_role=actor.role,
            confirmed_by_id=actor.id,
            photos=list(data.photos),
            condition_notes=data.condition_notes,
            handed_over_at=now,
        )
        db.flush()

    return _transition(
        db, notifier, booking, "handover", actor, now, before=_insert_handover
    )


def confirm_return(
    db: Session,
    notifier: EventNotifier,
    *,
    booking: RentalBooking,
    actor: Actor,
    data: ReturnRequest,
    now: Optional[datetime] = None,
) -> RentalBooking:
    now = now or utcnow()
    returned_at = now
    if not data.photos:
        raise ValidationError("At least one return photo is required")

    current = crud_rental.get_by_ref(db, booking.id)
    if current is not None and current.handover is None:
        raise ConflictError("Cannot record a return before the handover")

    def _insert_return(locked: RentalBooking):
        if locked.handover is None:
            raise ConflictError("Cannot record a return before the handover")
        if locked.rental_return is not None:
            raise ConflictError("Return has already been recorded")
        fee, days_late = late_fee_for(locked, returned_at)
        locked.rental_return = RentalReturn(
            confirmed_by_role=actor.role,
            confirmed_by_id=actor.id,
            photos=list(data.photos),
            condition_notes=data.condition_notes,
            is_late=fee > 0,
            days_overdue=days_late,
            late_fee=fee,
            returned_at=returned_at,
        )
        db.flush()
        return {"returned_at": returned_at, "late_fee": fee}

    return _transition(
        db, notifier, booking, "return", actor, now, before=_insert_return
    )


def cancel(
    db: Session, notifier: EventNotifier, *, booking: RentalBooking, actor: Actor,
    reason: str, now: Optional[datetime] = None,
) -> RentalBooking:
    return _transition(db, notifier, booking, "cancel", actor, now or utcnow(), reason=reason)


def dispute(
    db: Session, notifier: EventNotifier, *, booking: RentalBooking, actor: Actor,
    reason: str, now: Optional[datetime] = None,
) -> RentalBooking:
    return _transition(db, notifier, booking, "dispute", actor, now or utcnow(), reason=reason)


def party_for(booking: RentalBooking, user_id: str, supplier: Optional[Supplier]) -> Optional[Actor]:
    if booking.buyer_id == user_id:
        return Actor(role="buyer", id=user_id)
    if supplier is not None and booking.supplier_id == supplier.id:
        return Actor(role="supplier", id=supplier.id)
    return None


def detect_overdue(
    db: Session, notifier: EventNotifier, now: Optional[datetime] = None
) -> List[str]:
    now = now or utcnow()
    overdue = crud_rental.overdue(db, now)
    for booking in overdue:
        days_late = math.ceil((now - booking.end_date).total_seconds() / SECONDS_PER_DAY)
        _broadcast(notifier, booking, "rental:overdue", days_overdue=days_late)
    if overdue:
        logger.info(f"{len(overdue)} rental(s) overdue")
    return [booking.booking_number for booking in overdue]
