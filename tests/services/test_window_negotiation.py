from datetime import timedelta

import pytest

from buildapp.core.errors import AuthorizationError, ConflictError, ValidationError
from buildapp.services import window_negotiation
from buildapp.services.window_negotiation import ORDER_WINDOWS, RENTAL_WINDOWS
from buildapp.utils.state_machine import Actor
from tests.utils.factories import (
    NOW,
    create_booking,
    create_order,
    create_rental_tool,
    create_supplier,
)

W1 = (NOW + timedelta(days=1, hours=1), NOW + timedelta(days=1, hours=3))
W2 = (NOW + timedelta(days=2, hours=1), NOW + timedelta(days=2, hours=3))


@pytest.fixture
def parties(db_session):
    supplier = create_supplier(db_session)
    return supplier, Actor("buyer", "user_buyer"), Actor("supplier", supplier.id)


def _propose(db, notifier, parent, actor, window, kind=ORDER_WINDOWS):
    return window_negotiation.propose(
        db, notifier, kind, parent, actor=actor,
        window_start=window[0], window_end=window[1], now=NOW,
    )


def test_counter_then_accept_agrees_on_counter_window(db_session, notifier, parties):
    supplier, buyer, seller = parties
    order = create_order(db_session, supplier, status="pending")

    order = _propose(db_session, notifier, order, seller, W1)
    assert (order.proposal_status, order.proposed_by) == ("pending", "supplier")

    order = window_negotiation.counter_propose(
        db_session, notifier, ORDER_WINDOWS, order, actor=buyer,
        window_start=W2[0], window_end=W2[1], now=NOW,
    )
    assert order.proposed_by == "buyer"
    assert order.proposed_window_start == W2[0]

    order = window_negotiation.accept(
        db_session, notifier, ORDER_WINDOWS, order, actor=seller, now=NOW
    )

    assert (order.promised_window_start, order.promised_window_end) == W2
    assert order.proposal_status == "accepted"
    assert order.window_agreed_at == NOW
    assert order.status == "confirmed"
    assert order.confirmed_at == NOW
    assert [h.new_status for h in order.status_history] == ["confirmed"]
    assert notifier.of("order:window-accepted")
    assert notifier.of("order:status-changed")


def test_second_accept_conflicts_and_keeps_promised_window(db_session, notifier, parties):
    supplier, buyer, seller = parties
    order = create_order(db_session, supplier, status="confirmed")
    order = _propose(db_session, notifier, order, seller, W1)
    order = window_negotiation.accept(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)

    with pytest.raises(ConflictError):
        window_negotiation.accept(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)

    db_session.refresh(order)
    assert (order.promised_window_start, order.promised_window_end) == W1
    assert order.proposal_status == "accepted"


def test_cannot_answer_own_proposal(db_session, notifier, parties):
    supplier, buyer, seller = parties
    order = create_order(db_session, supplier)
    order = _propose(db_session, notifier, order, buyer, W1)

    with pytest.raises(AuthorizationError):
        window_negotiation.accept(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)
    with pytest.raises(AuthorizationError):
        window_negotiation.reject(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)
    with pytest.raises(AuthorizationError):
        window_negotiation.counter_propose(
            db_session, notifier, ORDER_WINDOWS, order, actor=buyer,
            window_start=W2[0], window_end=W2[1],
        )


def test_reject_keeps_promised_window(db_session, notifier, parties):
    supplier, buyer, seller = parties
    order = create_order(
        db_session, supplier, promised_window_start=W1[0], promised_window_end=W1[1]
    )
    order = _propose(db_session, notifier, order, seller, W2)

    order = window_negotiation.reject(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)

    assert order.proposal_status == "rejected"
    assert (order.promised_window_start, order.promised_window_end) == W1
    with pytest.raises(ConflictError):
        window_negotiation.accept(db_session, notifier, ORDER_WINDOWS, order, actor=buyer)


def test_counter_needs_an_existing_proposal(db_session, notifier, parties):
    supplier, buyer, _ = parties
    order = create_order(db_session, supplier)

    with pytest.raises(ConflictError):
        window_negotiation.counter_propose(
            db_session, notifier, ORDER_WINDOWS, order, actor=buyer,
            window_start=W1[0], window_end=W1[1],
        )


def test_inverted_window_is_invalid(db_session, notifier, parties):
    supplier, buyer, _ = parties
    order = create_order(db_session, supplier)

    with pytest.raises(ValidationError):
        _propose(db_session, notifier, order, buyer, (W1[1], W1[0]))


@pytest.mark.parametrize("status", ["delivered", "completed", "cancelled", "disputed"])
def test_terminal_orders_are_not_negotiable(db_session, notifier, parties, status):
    supplier, buyer, _ = parties
    order = create_order(db_session, supplier, status=status)

    with pytest.raises(ConflictError):
        _propose(db_session, notifier, order, buyer, W1)


def test_confirm_scheduled_time(db_session, notifier, parties):
    supplier, buyer, seller = parties
    order = create_order(
        db_session, supplier, status="pending",
        promised_window_start=W1[0], promised_window_end=W1[1],
    )

    with pytest.raises(AuthorizationError):
        window_negotiation.confirm_scheduled_time(db_session, notifier, order=order, actor=buyer)

    order = window_negotiation.confirm_scheduled_time(
        db_session, notifier, order=order, actor=seller, now=NOW
    )
    assert order.status == "confirmed"
    assert order.window_agreed_at == NOW

    with pytest.raises(ConflictError):
        window_negotiation.confirm_scheduled_time(db_session, notifier, order=order, actor=seller)


def test_confirm_scheduled_time_needs_a_window(db_session, notifier, parties):
    supplier, _, seller = parties
    order = create_order(db_session, supplier, status="pending")

    with pytest.raises(ConflictError):
        window_negotiation.confirm_scheduled_time(db_session, notifier, order=order, actor=seller)


def test_rental_window_acceptance_confirms_pending_booking(db_session, notifier, parties):
    supplier, buyer, seller = parties
    tool = create_rental_tool(db_session, supplier)
    booking = create_booking(db_session, tool, status="pending")

    booking = _propose(db_session, notifier, booking, buyer, W1, kind=RENTAL_WINDOWS)
    booking = window_negotiation.accept(
        db_session, notifier, RENTAL_WINDOWS, booking, actor=seller, now=NOW
    )

    assert booking.status == "confirmed"
    assert booking.confirmed_at == NOW
    assert (booking.promised_window_start, booking.promised_window_end) == W1
    assert notifier.of("rental:window-accepted")
    assert notifier.of("rental:status-changed")[0][1]["old_status"] == "pending"
