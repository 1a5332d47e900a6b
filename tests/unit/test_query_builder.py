"""Tests for allow-listed filtering, sorting and pagination."""
from decimal import Decimal

import pytest

from buildapp.core.errors import ValidationError
from buildapp.crud import crud_order
from buildapp.utils.query_builder import FilterField
from tests.utils.factories import create_order, create_supplier


@pytest.fixture
def orders(db_session):
    supplier = create_supplier(db_session)
    return [
        create_order(db_session, supplier, status="confirmed", total_amount=Decimal("100")),
        create_order(db_session, supplier, status="pending", total_amount=Decimal("300")),
        create_order(db_session, supplier, status="confirmed", total_amount=Decimal("200")),
    ]


def test_filters_and_sorts(db_session, orders):
    page = crud_order.list_for_buyer(
        db_session, "user_buyer",
        params={"status": "confirmed"}, sort="grand_total", order="asc",
    )

    assert [o.grand_total for o in page["items"]] == [Decimal("115.00"), Decimal("215.00")]
    assert page["pagination"]["total_count"] == 2


def test_pagination(db_session, orders):
    page = crud_order.list_for_buyer(
        db_session, "user_buyer", params={}, sort="grand_total", order="desc",
        page=2, page_size=2,
    )

    assert [o.total_amount for o in page["items"]] == [Decimal("100.00")]
    assert page["pagination"] == {
        "page": 2, "page_size": 2, "total_count": 3, "total_pages": 2,
    }


def test_page_size_is_capped(db_session, orders):
    page = crud_order.list_for_buyer(db_session, "user_buyer", params={}, page_size=500)

    assert page["pagination"]["page_size"] == 50


def test_unknown_filter_is_rejected(db_session, orders):
    with pytest.raises(ValidationError) as exc:
        crud_order.list_for_buyer(db_session, "user_buyer", params={"buyer_id": "someone"})
    assert "status" in exc.value.details["allowed"]


def test_unknown_sort_is_rejected(db_session, orders):
    with pytest.raises(ValidationError):
        crud_order.list_for_buyer(db_session, "user_buyer", params={}, sort="password")


def test_other_buyers_orders_are_never_listed(db_session, orders):
    page = crud_order.list_for_buyer(db_session, "someone_else", params={})

    assert page["items"] == []


def test_filter_field_rejects_unknown_operator():
    with pytest.raises(ValueError):
        FilterField(column=None, operator="regex")
