"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple, Union

from core.errors import FetchError

ContestId = Union[int, str]

ALERT_KEY_PREFIX = "contest-"


@dataclass(frozen=True)
class ContestRecord:
    """One contest as listed by the remote feed."""

    contest_id: ContestId
    name: str
    start: datetime
    duration: timedelta


@dataclass(frozen=True)
class FetchResult:
    """Tagged outcome of one contest-list fetch."""

    contests: Tuple[ContestRecord, ...] = ()
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, contests: Tuple[ContestRecord, ...]) -> "FetchResult":
        return cls(contests=contests)

    @classmethod
    def failure(cls, error: FetchError) -> "FetchResult":
        return cls(error=error)


@dataclass(frozen=True)
class Preferences:
    """User preferences read by the scheduler."""

    notifications_enabled: bool = True
    handle: str = ""


@dataclass(frozen=True)
class Alert:
    """A single user-facing alert, keyed for platform-level replacement."""

    key: str
    title: str
    body: str
    destination_url: str


def alert_key(contest_id: ContestId) -> str:
    """Return the deterministic alert key for a contest identifier."""

    return f"{ALERT_KEY_PREFIX}{contest_id}"
