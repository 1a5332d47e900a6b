# buildapp/utils/pricing.py
"""Money arithmetic for orders and rentals. All amounts are Decimal, 2dp."""
import math
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

CENTS = Decimal("0.01")
SECONDS_PER_DAY = 24 * 60 * 60


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity) -> Decimal:
    return to_money(Decimal(str(unit_price)) * Decimal(str(quantity)))


def sum_money(values: Iterable) -> Decimal:
    return to_money(sum((to_money(v) for v in values), Decimal("0")))


def rental_duration_days(start: datetime, end: datetime) -> int:
    """Whole days charged; any part day counts as a full day."""
    seconds = (end - start).total_seconds()
    return max(1, math.ceil(seconds / SECONDS_PER_DAY))


def rental_total(days: int, day_rate, week_rate: Optional[Decimal] = None) -> Decimal:
    """
    Cheaper of straight day pricing and week packing.

    Week packing charges full weeks at week_rate and the remaining days at
    day_rate. Without a week rate only day pricing applies.
    """
    day_rate = to_money(day_rate)
    daily = to_money(day_rate * days)
    if week_rate is None:
        return daily

    weeks, remainder = divmod(days, 7)
    packed = to_money(to_money(week_rate) * weeks + day_rate * remainder)
    return min(daily, packed)
