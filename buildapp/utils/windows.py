# buildapp/utils/windows.py
"""Bookable delivery/pickup slots offered to buyers at checkout."""
from datetime import datetime, timedelta, timezone
from typing import List

OPENING_HOUR = 8
CLOSING_HOUR = 18
SAME_DAY_CUTOFF_HOUR = 14
LEAD_TIME = timedelta(hours=2)
SUNDAY = 6


def available_windows(
    now: datetime,
    days: int = 7,
    tz_offset_minutes: int = 0,
    slot_length: timedelta = timedelta(hours=1),
) -> List[dict]:
    """
    Hourly slots between opening and closing time for the next `days` days.

    Sundays are skipped. Same-day slots are only offered before the cutoff
    hour and must start at least LEAD_TIME from now. Hours are interpreted
    in the buyer's local time given by `tz_offset_minutes`; returned
    timestamps are UTC.
    """
    local_tz = timezone(timedelta(minutes=tz_offset_minutes))
    local_now = now.astimezone(local_tz)
    earliest = local_now + LEAD_TIME

    slots: List[dict] = []
    for day_offset in range(days):
        day = (local_now + timedelta(days=day_offset)).date()
        if day.weekday() == SUNDAY:
            continue
        if day_offset == 0 and local_now.hour >= SAME_DAY_CUTOFF_HOUR:
            continue

        start = datetime(day.year, day.month, day.day, OPENING_HOUR, tzinfo=local_tz)
        closing = datetime(day.year, day.month, day.day, CLOSING_HOUR, tzinfo=local_tz)
        while start + slot_length <= closing:
            if start >= earliest:
                slots.append({
                    "start": start.astimezone(timezone.utc),
                    "end": (start + slot_length).astimezone(timezone.utc),
                })
            start += slot_length

    return slots
