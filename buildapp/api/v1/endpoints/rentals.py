# buildapp/api/v1/endpoints/rentals.py
"""Rental tool search, bookings, handover/return and window negotiation."""
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from buildapp.api import deps
from buildapp.api.responses import build_booking_response, build_tool_response, ok
from buildapp.core.errors import NotFoundError
from buildapp.core.limiter import limiter
from buildapp.crud import crud_rental
from buildapp.db.session import get_db
from buildapp.models.supplier import Supplier
from buildapp.schemas.rental import (
    HandoverRequest,
    RentalBookingCreate,
    RentalCancelRequest,
    RentalDisputeRequest,
    ReturnRequest,
)
from buildapp.schemas.token import TokenPayload
from buildapp.schemas.window import WindowProposalRequest
from buildapp.services import rental_lifecycle, window_negotiation
from buildapp.services.event_notifier import EventNotifier, get_notifier
from buildapp.services.window_negotiation import RENTAL_WINDOWS
from buildapp.utils.time import utcnow

router = APIRouter(tags=["Rentals"])


def _get_booking_for_party(db: Session, booking_ref: str, current_user: TokenPayload,
                           supplier: Optional[Supplier]):
    booking = crud_rental.get_by_ref(db, booking_ref)
    actor = rental_lifecycle.party_for(booking, current_user.sub, supplier) if booking else None
    if actor is None:
        raise NotFoundError("Rental booking not found")
    return booking, actor


def _booking_data(booking) -> dict:
    data = build_booking_response(booking, now=utcnow())
    data["available_actions"] = rental_lifecycle.RENTAL_TRANSITIONS.events_from(booking.status)
    return data


@router.get("/rental-tools")
def list_rental_tools(
    params: deps.ListParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
):
    page = crud_rental.list_bookable_tools(db, **params.as_kwargs())
    return ok({
        "items": [build_tool_response(tool) for tool in page["items"]],
        "pagination": page["pagination"],
    })


@router.post("/rentals/book", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
def book_rental(
    request: Request,
    booking_in: RentalBookingCreate,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_buyer),
):
    booking = rental_lifecycle.book(db, notifier, buyer_id=current_user.sub, data=booking_in)
    return ok(_booking_data(booking), f"Rental {booking.booking_number} booked")


@router.get("/rentals")
def list_rentals(
    params: deps.ListParams = Depends(),
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    if current_user.role == "supplier":
        if supplier is None:
            raise NotFoundError("Supplier profile not found")
        page = crud_rental.list_for_supplier(db, supplier.id, **params.as_kwargs())
    else:
        page = crud_rental.list_for_buyer(db, current_user.sub, **params.as_kwargs())
    return ok({
        "items": [_booking_data(b) for b in page["items"]],
        "pagination": page["pagination"],
    })


@router.get("/rentals/{booking_ref}")
def get_rental(
    booking_ref: str,
    db: Session = Depends(get_db),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, _ = _get_booking_for_party(db, booking_ref, current_user, supplier)
    return ok(_booking_data(booking))


@router.post("/rentals/{booking_ref}/confirm")
def confirm_rental(
    booking_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = rental_lifecycle.confirm(db, notifier, booking=booking, actor=actor)
    return ok(_booking_data(booking), "Rental confirmed")


@router.post("/rentals/{booking_ref}/confirm-handover")
def confirm_handover(
    booking_ref: str,
    handover_in: HandoverRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = rental_lifecycle.confirm_handover(
        db, notifier, booking=booking, actor=actor, data=handover_in
    )
    return ok(_booking_data(booking), "Handover confirmed")


@router.post("/rentals/{booking_ref}/confirm-return")
def confirm_return(
    booking_ref: str,
    return_in: ReturnRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = rental_lifecycle.confirm_return(
        db, notifier, booking=booking, actor=actor, data=return_in
    )
    return ok(_booking_data(booking), "Return confirmed")


@router.post("/rentals/{booking_ref}/cancel")
def cancel_rental(
    booking_ref: str,
    cancel_in: RentalCancelRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = rental_lifecycle.cancel(
        db, notifier, booking=booking, actor=actor, reason=cancel_in.reason
    )
    return ok(_booking_data(booking), "Rental cancelled")


@router.post("/rentals/{booking_ref}/dispute")
def dispute_rental(
    booking_ref: str,
    dispute_in: RentalDisputeRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = rental_lifecycle.dispute(
        db, notifier, booking=booking, actor=actor, reason=dispute_in.reason
    )
    return ok(_booking_data(booking), "Dispute raised")


# ── Handover window negotiation ──────────────────────────────────────

@router.post("/rentals/{booking_ref}/propose-window")
def propose_rental_window(
    booking_ref: str,
    window_in: WindowProposalRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = window_negotiation.propose(
        db, notifier, RENTAL_WINDOWS, booking, actor=actor,
        window_start=window_in.window_start, window_end=window_in.window_end,
    )
    return ok(_booking_data(booking), "Window proposed")


@router.post("/rentals/{booking_ref}/counter-propose-window")
def counter_propose_rental_window(
    booking_ref: str,
    window_in: WindowProposalRequest,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = window_negotiation.counter_propose(
        db, notifier, RENTAL_WINDOWS, booking, actor=actor,
        window_start=window_in.window_start, window_end=window_in.window_end,
    )
    return ok(_booking_data(booking), "Counter-proposal sent")


@router.post("/rentals/{booking_ref}/accept-window")
def accept_rental_window(
    booking_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = window_negotiation.accept(db, notifier, RENTAL_WINDOWS, booking, actor=actor)
    return ok(_booking_data(booking), "Window accepted")


@router.post("/rentals/{booking_ref}/reject-window")
def reject_rental_window(
    booking_ref: str,
    db: Session = Depends(get_db),
    notifier: EventNotifier = Depends(get_notifier),
    current_user: TokenPayload = Depends(deps.get_current_user),
    supplier: Optional[Supplier] = Depends(deps.get_optional_supplier),
):
    booking, actor = _get_booking_for_party(db, booking_ref, current_user, supplier)
    booking = window_negotiation.reject(db, notifier, RENTAL_WINDOWS, booking, actor=actor)
    return ok(_booking_data(booking), "Window rejected")
