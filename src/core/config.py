"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class WindowConfig:
    """Lead-time bounds of the pre-start notification window.

    The interval is half-open: a contest is due when
    ``min_lead < start - now <= max_lead``.
    """

    min_lead: timedelta = timedelta(minutes=25)
    max_lead: timedelta = timedelta(minutes=35)


@dataclass(frozen=True)
class ScheduleConfig:
    """Periods of the two recurring triggers."""

    poll_interval: timedelta = timedelta(minutes=5)
    cleanup_interval: timedelta = timedelta(hours=24)


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the notified-contest log."""

    capacity: int = 100


@dataclass(frozen=True)
class NotificationConfig:
    """Alert settings consumed by the dispatcher."""

    destination_url: str = "https://codeforces.com/contests"
