"""Notification window evaluation (core domain)."""

from __future__ import annotations

from datetime import datetime, timedelta

from core.config import WindowConfig
from core.models import ContestRecord

DEFAULT_WINDOW = WindowConfig()


def lead_time(now: datetime, contest: ContestRecord) -> timedelta:
    """Return the signed time left until the contest starts."""

    return contest.start - now


def is_due(now: datetime, contest: ContestRecord, window: WindowConfig = DEFAULT_WINDOW) -> bool:
    """Return True when the contest falls inside the pre-start window.

    The lower bound is exclusive and the upper bound inclusive. With a 5 minute
    poll and a 10 minute wide window every contest is seen as due in at least
    one poll, so no previous poll time needs to be tracked.
    """

    delta = lead_time(now, contest)
    return window.min_lead < delta <= window.max_lead
