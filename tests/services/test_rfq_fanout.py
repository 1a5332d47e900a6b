from datetime import timedelta

import pytest

from buildapp.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from buildapp.models.rfq import RFQ
from buildapp.schemas.offer import OfferSubmit
from buildapp.schemas.rfq import RFQCreate
from buildapp.services import offer_ledger, rfq_fanout
from tests.utils.factories import NOW, create_project, create_supplier


def _rfq_in(supplier_ids, **kwargs):
    fields = {
        "title": "Slab pour materials",
        "line_items": [
            {"description": "Ready-mix concrete", "quantity": "6", "unit": "m3"},
            {"description": "Rebar 12mm", "quantity": "40", "unit": "bar"},
        ],
        "supplier_ids": supplier_ids,
    }
    fields.update(kwargs)
    return RFQCreate(**fields)


def test_create_fans_out_to_each_supplier(db_session, notifier):
    a = create_supplier(db_session, "user_a")
    b = create_supplier(db_session, "user_b")

    rfq = rfq_fanout.create(
        db_session, notifier, buyer_id="user_buyer", data=_rfq_in([a.id, b.id, a.id]), now=NOW
    )

    assert rfq.status == "active"
    assert rfq.expires_at == NOW + timedelta(days=7)
    assert sorted(r.supplier_id for r in rfq.recipients) == sorted([a.id, b.id])
    assert all(r.notified_at == NOW and r.viewed_at is None for r in rfq.recipients)
    assert [line["line_index"] for line in rfq.line_items] == [0, 1]

    created = notifier.of("rfq:created")
    assert sorted(e[2][0] for e in created) == ["user:user_a", "user:user_b"]
    assert notifier.of("rfqs:list-updated")[0][2] == ["suppliers"]


def test_create_rejects_more_than_five_suppliers(db_session, notifier):
    suppliers = [create_supplier(db_session, f"user_{i}") for i in range(6)]

    with pytest.raises(ValidationError):
        rfq_fanout.create(
            db_session, notifier, buyer_id="user_buyer",
            data=_rfq_in([s.id for s in suppliers]),
        )
    assert db_session.query(RFQ).count() == 0
    assert notifier.events == []


def test_create_rejects_unknown_and_inactive_suppliers(db_session, notifier):
    inactive = create_supplier(db_session, "user_idle", is_active=False)

    with pytest.raises(NotFoundError):
        rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in(["sup_missing"]))
    with pytest.raises(ValidationError):
        rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([inactive.id]))


def test_create_requires_project_ownership(db_session, notifier):
    supplier = create_supplier(db_session)
    project = create_project(db_session, owner_id="someone_else")

    with pytest.raises(AuthorizationError):
        rfq_fanout.create(
            db_session, notifier, buyer_id="user_buyer",
            data=_rfq_in([supplier.id], project_id=project.id),
        )


def test_get_owned_distinguishes_missing_from_foreign(db_session, notifier):
    supplier = create_supplier(db_session)
    rfq = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([supplier.id]))

    with pytest.raises(NotFoundError):
        rfq_fanout.get_owned(db_session, buyer_id="user_buyer", rfq_id="rfq_missing")
    with pytest.raises(AuthorizationError):
        rfq_fanout.get_owned(db_session, buyer_id="intruder", rfq_id=rfq.id)


def test_close_only_from_active(db_session, notifier):
    supplier = create_supplier(db_session)
    rfq = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([supplier.id]))

    closed = rfq_fanout.close(db_session, notifier, buyer_id="user_buyer", rfq_id=rfq.id, now=NOW)
    assert closed.status == "closed"
    assert closed.closed_at == NOW

    with pytest.raises(ConflictError) as exc:
        rfq_fanout.close(db_session, notifier, buyer_id="user_buyer", rfq_id=rfq.id)
    assert exc.value.details["current_status"] == "closed"


def test_delete_blocked_once_an_offer_exists(db_session, notifier):
    supplier = create_supplier(db_session)
    quoted = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([supplier.id]))
    empty = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([supplier.id]))
    offer_ledger.submit(
        db_session, notifier, supplier=supplier, rfq_id=quoted.id,
        data=OfferSubmit(line_prices=[{"unit_price": "100"}]),
    )

    with pytest.raises(ConflictError):
        rfq_fanout.delete(db_session, buyer_id="user_buyer", rfq_id=quoted.id)

    rfq_fanout.delete(db_session, buyer_id="user_buyer", rfq_id=empty.id)
    assert db_session.query(RFQ).filter(RFQ.id == empty.id).first() is None


def test_mark_viewed_keeps_first_view(db_session, notifier):
    supplier = create_supplier(db_session)
    rfq = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([supplier.id]))

    first = rfq_fanout.mark_viewed(db_session, supplier=supplier, rfq_id=rfq.id, now=NOW)
    assert first.viewed_at == NOW
    again = rfq_fanout.mark_viewed(
        db_session, supplier=supplier, rfq_id=rfq.id, now=NOW + timedelta(hours=3)
    )
    assert again.viewed_at == NOW


def test_mark_viewed_requires_recipient(db_session, notifier):
    invited = create_supplier(db_session, "user_a")
    outsider = create_supplier(db_session, "user_b")
    rfq = rfq_fanout.create(db_session, notifier, buyer_id="user_buyer", data=_rfq_in([invited.id]))

    with pytest.raises(NotFoundError):
        rfq_fanout.mark_viewed(db_session, supplier=outsider, rfq_id=rfq.id)


def test_expire_overdue_only_touches_active_past_expiry(db_session, notifier):
    supplier = create_supplier(db_session)
    stale = rfq_fanout.create(
        db_session, notifier, buyer_id="user_buyer",
        data=_rfq_in([supplier.id], expiry_days=1), now=NOW,
    )
    fresh = rfq_fanout.create(
        db_session, notifier, buyer_id="user_buyer",
        data=_rfq_in([supplier.id], expiry_days=10), now=NOW,
    )

    assert rfq_fanout.expire_overdue(db_session, now=NOW + timedelta(days=2)) == 1
    db_session.expire_all()
    assert db_session.get(RFQ, stale.id).status == "expired"
    assert db_session.get(RFQ, fresh.id).status == "active"
