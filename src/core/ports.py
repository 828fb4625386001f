"""Ports (interfaces) used by the core scheduler.

Ports define the minimal contracts for the contest source, storage, and
alert presentation adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from core.models import Alert, ContestId, FetchResult, Preferences


class ContestSourcePort(Protocol):
    """Contest listing operations required by the scheduler."""

    async def fetch_contests(self) -> FetchResult:
        ...


class DedupStorePort(Protocol):
    """Bounded log of contest identifiers that were already notified."""

    def contains(self, contest_id: ContestId) -> bool:
        ...

    def record(self, contest_id: ContestId) -> None:
        ...

    def clear(self) -> None:
        ...

    def last_cleared_at(self) -> Optional[datetime]:
        ...


class PreferencesPort(Protocol):
    """Durable key-value preferences owned by the presentation layer."""

    def load_preferences(self) -> Preferences:
        ...

    def seed_preferences(self, defaults: Preferences) -> None:
        ...


class AlertPresenterPort(Protocol):
    """Presentation operations required by the dispatcher."""

    async def show(self, alert: Alert) -> None:
        ...

    async def dismiss(self, key: str) -> None:
        ...

    async def surface(self, url: str) -> None:
        ...
