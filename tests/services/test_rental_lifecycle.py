from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from buildapp.core.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from buildapp.models.rental_booking import RentalBooking
from buildapp.models.rental_handover import RentalHandover
from buildapp.models.rental_return import RentalReturn
from buildapp.schemas.rental import HandoverRequest, RentalBookingCreate, ReturnRequest
from buildapp.services import rental_lifecycle
from buildapp.utils.state_machine import Actor
from tests.utils.factories import (
    NOW,
    create_booking,
    create_project,
    create_rental_tool,
    create_supplier,
)

NOV_1 = datetime(2025, 11, 1, tzinfo=timezone.utc)
NOV_8 = datetime(2025, 11, 8, tzinfo=timezone.utc)


@pytest.fixture
def supplier(db_session):
    return create_supplier(db_session)


@pytest.fixture
def actors(supplier):
    return (
        Actor("buyer", "user_buyer"),
        Actor("supplier", supplier.id),
    )


def _handover(db, notifier, booking, actor, at):
    return rental_lifecycle.confirm_handover(
        db, notifier, booking=booking, actor=actor,
        data=HandoverRequest(photos=["out.jpg"]), now=at,
    )


def _return(db, notifier, booking, actor, returned_at):
    return rental_lifecycle.confirm_return(
        db, notifier, booking=booking, actor=actor,
        data=ReturnRequest(photos=["back.jpg"]), now=returned_at,
    )


def test_week_is_cheaper_than_seven_days(db_session, notifier, supplier):
    tool = create_rental_tool(
        db_session, supplier, day_rate=Decimal("20"), week_rate=Decimal("120")
    )

    booking = rental_lifecycle.book(
        db_session, notifier, buyer_id="user_buyer",
        data=RentalBookingCreate(rental_tool_id=tool.id, start_date=NOV_1, end_date=NOV_8),
        now=datetime(2025, 10, 20, tzinfo=timezone.utc),
    )

    assert booking.rental_duration_days == 7
    assert booking.total_rental_amount == Decimal("120.00")
    assert booking.status == "pending"
    assert booking.booking_number.startswith("RNT-202510-")
    assert booking.delivery_fee == Decimal("0.00")
    assert notifier.of("rental:created")


def test_delivery_booking_uses_project_site_and_flat_fee(db_session, notifier, supplier):
    tool = create_rental_tool(db_session, supplier)
    project = create_project(db_session)

    booking = rental_lifecycle.book(
        db_session, notifier, buyer_id="user_buyer",
        data=RentalBookingCreate(
            rental_tool_id=tool.id, start_date=NOW + timedelta(days=1),
            end_date=NOW + timedelta(days=3), pickup_or_delivery="delivery",
            project_id=project.id,
        ),
        now=NOW,
    )

    assert booking.delivery_fee == Decimal("50.00")
    assert booking.delivery_address == "12 River Road"
    assert booking.total_rental_amount == Decimal("80.00")


def test_booking_rejects_unavailable_tools(db_session, notifier, supplier):
    busy = create_rental_tool(db_session, supplier, is_available=False)
    pickup_only = create_rental_tool(db_session, supplier, delivery_option="pickup")
    period = {"start_date": NOW + timedelta(days=1), "end_date": NOW + timedelta(days=2)}

    with pytest.raises(ConflictError):
        rental_lifecycle.book(
            db_session, notifier, buyer_id="user_buyer",
            data=RentalBookingCreate(rental_tool_id=busy.id, **period), now=NOW,
        )
    with pytest.raises(ValidationError):
        rental_lifecycle.book(
            db_session, notifier, buyer_id="user_buyer",
            data=RentalBookingCreate(
                rental_tool_id=pickup_only.id, pickup_or_delivery="delivery",
                delivery_address="1 Site Lane", **period,
            ),
            now=NOW,
        )
    with pytest.raises(NotFoundError):
        rental_lifecycle.book(
            db_session, notifier, buyer_id="user_buyer",
            data=RentalBookingCreate(rental_tool_id="tool_missing", **period), now=NOW,
        )


def test_booking_in_the_past_is_invalid(db_session, notifier, supplier):
    tool = create_rental_tool(db_session, supplier)

    with pytest.raises(ValidationError):
        rental_lifecycle.book(
            db_session, notifier, buyer_id="user_buyer",
            data=RentalBookingCreate(rental_tool_id=tool.id, start_date=NOV_1, end_date=NOV_8),
            now=NOW,
        )


def test_only_supplier_confirms(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier), status="pending")

    with pytest.raises(AuthorizationError):
        rental_lifecycle.confirm(db_session, notifier, booking=booking, actor=buyer)

    booking = rental_lifecycle.confirm(db_session, notifier, booking=booking, actor=seller, now=NOW)
    assert booking.status == "confirmed"
    assert booking.confirmed_at == NOW


def test_handover_then_on_time_return(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))

    booking = _handover(db_session, notifier, booking, seller, booking.start_date)
    assert booking.status == "active"
    assert booking.actual_start_date == booking.start_date
    assert booking.handover.photos == ["out.jpg"]

    booking = _return(db_session, notifier, booking, buyer, booking.end_date)

    assert booking.status == "completed"
    assert booking.late_return_fee == Decimal("0.00")
    assert booking.actual_end_date == booking.end_date
    assert booking.rental_return.is_late is False
    assert booking.rental_return.days_overdue == 0


def test_late_return_charges_fixed_fee(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))
    booking = _handover(db_session, notifier, booking, seller, booking.start_date)

    booking = _return(
        db_session, notifier, booking, buyer, booking.end_date + timedelta(days=1, hours=2)
    )

    assert booking.late_return_fee == Decimal("50.00")
    assert booking.rental_return.is_late is True
    assert booking.rental_return.days_overdue == 2


def test_return_is_stamped_with_server_time(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))
    booking = _handover(db_session, notifier, booking, seller, booking.start_date)
    late = booking.end_date + timedelta(days=7)

    request = ReturnRequest.model_validate({
        "photos": ["back.jpg"],
        "returned_at": (booking.start_date - timedelta(days=30)).isoformat(),
    })
    booking = rental_lifecycle.confirm_return(
        db_session, notifier, booking=booking, actor=buyer, data=request, now=late,
    )

    assert booking.actual_end_date == late
    assert booking.actual_end_date > booking.actual_start_date
    assert booking.late_return_fee == Decimal("50.00")
    assert booking.rental_return.returned_at == late


def test_transitions_publish_status_changes(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))

    booking = _handover(db_session, notifier, booking, seller, booking.start_date)
    _return(db_session, notifier, booking, buyer, booking.end_date)

    changes = [data for _, data, _ in notifier.of("rental:status-changed")]
    assert [(c["old_status"], c["status"], c["event"]) for c in changes] == [
        ("confirmed", "active", "handover"),
        ("active", "completed", "return"),
    ]


def test_return_before_handover_conflicts(db_session, notifier, supplier, actors):
    buyer, _ = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))

    with pytest.raises(ConflictError):
        _return(db_session, notifier, booking, buyer, booking.end_date)
    assert db_session.query(RentalReturn).count() == 0


def test_handover_and_return_happen_once(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier))
    booking = _handover(db_session, notifier, booking, seller, booking.start_date)

    with pytest.raises(ConflictError):
        _handover(db_session, notifier, booking, buyer, booking.start_date)

    booking = _return(db_session, notifier, booking, buyer, booking.end_date)
    with pytest.raises(ConflictError):
        _return(db_session, notifier, booking, seller, booking.end_date)

    assert db_session.query(RentalHandover).count() == 1
    assert db_session.query(RentalReturn).count() == 1


def test_pending_booking_cannot_be_handed_over(db_session, notifier, supplier, actors):
    _, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier), status="pending")

    with pytest.raises(ConflictError):
        _handover(db_session, notifier, booking, seller, NOW)
    assert db_session.query(RentalHandover).count() == 0


def test_overdue_is_derived_not_stored(db_session, notifier, supplier, actors):
    _, seller = actors
    tool = create_rental_tool(db_session, supplier)
    late = create_booking(db_session, tool, start_date=NOW - timedelta(days=5), days=3)
    on_time = create_booking(db_session, tool, start_date=NOW - timedelta(days=1), days=3)
    for booking in (late, on_time):
        _handover(db_session, notifier, booking, seller, booking.start_date)

    overdue = rental_lifecycle.detect_overdue(db_session, notifier, now=NOW)

    assert overdue == [late.booking_number]
    db_session.refresh(late)
    assert late.status == "active"
    assert late.is_overdue(NOW) is True
    event, data, _ = notifier.of("rental:overdue")[0]
    assert data["days_overdue"] == 2


def test_cancel_requires_reason_and_early_status(db_session, notifier, supplier, actors):
    buyer, seller = actors
    tool = create_rental_tool(db_session, supplier)
    booking = create_booking(db_session, tool)
    active = create_booking(db_session, tool, status="active")

    with pytest.raises(ValidationError):
        rental_lifecycle.cancel(db_session, notifier, booking=booking, actor=buyer, reason=" ")
    with pytest.raises(ConflictError):
        rental_lifecycle.cancel(db_session, notifier, booking=active, actor=buyer, reason="Done")

    booking = rental_lifecycle.cancel(
        db_session, notifier, booking=booking, actor=seller, reason="Machine broke", now=NOW
    )
    assert booking.status == "cancelled"
    assert booking.cancellation_reason == "Machine broke"
    assert booking.cancelled_at == NOW


def test_dispute_by_buyer_only(db_session, notifier, supplier, actors):
    buyer, seller = actors
    booking = create_booking(db_session, create_rental_tool(db_session, supplier), status="active")

    with pytest.raises(AuthorizationError):
        rental_lifecycle.dispute(db_session, notifier, booking=booking, actor=seller, reason="x")

    booking = rental_lifecycle.dispute(
        db_session, notifier, booking=booking, actor=buyer, reason="Mixer drum cracked"
    )
    assert booking.status == "disputed"
    assert booking.dispute_reason == "Mixer drum cracked"


def test_late_fee_for_boundary():
    booking = RentalBooking(end_date=NOV_8)

    assert rental_lifecycle.late_fee_for(booking, NOV_8) == (Decimal("0.00"), 0)
    assert rental_lifecycle.late_fee_for(booking, NOV_8 + timedelta(minutes=1)) == (
        Decimal("50.00"), 1
    )
