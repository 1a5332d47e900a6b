# buildapp/utils/numbering.py
"""
Human-readable document numbers.

Numbers are random within the month and therefore only probably unique;
callers insert them through `retry_on_conflict`.
"""
import random
from datetime import datetime

from buildapp.utils.time import utcnow


def _document_number(prefix: str, now: datetime = None) -> str:
    now = now or utcnow()
    return f"{prefix}-{now:%Y%m}-{random.randint(0, 99999):05d}"


def generate_order_number(now: datetime = None) -> str:
    return _document_number("ORD", now)


def generate_booking_number(now: datetime = None) -> str:
    return _document_number("RNT", now)
