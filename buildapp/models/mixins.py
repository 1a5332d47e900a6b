# buildapp/models/mixins.py
from sqlalchemy import Column, String, text
from sqlalchemy.sql import func

from buildapp.db.types import UTCDateTime


class TimestampMixin:
    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_at = Column(
        UTCDateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class NegotiatedWindowMixin:
    """
    Promised window plus the single outstanding window proposal.

    Shared by orders (delivery/pickup window) and rental bookings
    (handover window). The proposal state lives beside, and independent of,
    the parent's own status column.
    """

    promised_window_start = Column(UTCDateTime, nullable=True)
    promised_window_end = Column(UTCDateTime, nullable=True)

    proposed_window_start = Column(UTCDateTime, nullable=True)
    proposed_window_end = Column(UTCDateTime, nullable=True)
    proposed_by = Column(String, nullable=True)  # buyer | supplier
    proposal_status = Column(String, nullable=False, server_default=text("'none'"), default="none")
    window_agreed_at = Column(UTCDateTime, nullable=True)
