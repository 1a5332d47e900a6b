"""
Tests for money and rental pricing helpers.

Verifies that:
- Amounts are quantized to cents with half-up rounding
- Rental duration charges any part day as a full day
- Rental totals take the cheaper of day pricing and week packing
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from buildapp.utils.pricing import (
    line_total,
    rental_duration_days,
    rental_total,
    sum_money,
    to_money,
)

START = datetime(2025, 11, 1, tzinfo=timezone.utc)


class TestMoney:
    def test_to_money_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")
        assert to_money(None) == Decimal("0.00")
        assert to_money(7) == Decimal("7.00")

    def test_line_total(self):
        assert line_total("12.50", "3.2") == Decimal("40.00")

    def test_sum_money(self):
        assert sum_money(["0.10", "0.20", Decimal("0.005")]) == Decimal("0.31")


class TestRentalPricing:
    @pytest.mark.parametrize("delta,days", [
        (timedelta(hours=3), 1),
        (timedelta(days=1), 1),
        (timedelta(days=1, minutes=1), 2),
        (timedelta(days=7), 7),
    ])
    def test_duration_rounds_part_days_up(self, delta, days):
        assert rental_duration_days(START, START + delta) == days

    def test_one_week_uses_week_rate(self):
        """7 days at 20/day is 140; one week at 120 wins."""
        assert rental_total(7, Decimal("20"), Decimal("120")) == Decimal("120.00")

    def test_week_plus_remainder(self):
        """9 days: one week (120) + 2 days (40) = 160, against 180 daily."""
        assert rental_total(9, Decimal("20"), Decimal("120")) == Decimal("160.00")

    def test_day_pricing_wins_when_week_rate_is_dear(self):
        assert rental_total(7, Decimal("10"), Decimal("100")) == Decimal("70.00")

    def test_no_week_rate(self):
        assert rental_total(10, Decimal("20")) == Decimal("200.00")
