from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from core.config import NotificationConfig
from core.dispatcher import ALERT_TITLE, NotificationDispatcher, build_alert, format_start_time
from core.models import Alert, ContestRecord, alert_key


class RecordingPresenter:
    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []

    async def show(self, alert: Alert) -> None:
        self.calls.append(("show", alert))

    async def dismiss(self, key: str) -> None:
        self.calls.append(("dismiss", key))

    async def surface(self, url: str) -> None:
        self.calls.append(("surface", url))


def _contest() -> ContestRecord:
    return ContestRecord(
        contest_id=1921,
        name="Educational Round 161",
        start=datetime(2024, 1, 18, 14, 35, tzinfo=timezone.utc),
        duration=timedelta(hours=2),
    )


def test_alert_key_is_derived_from_contest_id() -> None:
    assert alert_key(42) == "contest-42"
    assert alert_key("gym-7") == "contest-gym-7"


def test_build_alert_contains_name_and_local_start_time() -> None:
    contest = _contest()
    alert = build_alert(contest, "https://codeforces.com/contests")

    assert alert.key == "contest-1921"
    assert alert.title == ALERT_TITLE
    assert alert.body == f"Educational Round 161 starts at {format_start_time(contest.start)}"
    assert alert.destination_url == "https://codeforces.com/contests"


def test_notify_emits_exactly_one_alert() -> None:
    presenter = RecordingPresenter()
    dispatcher = NotificationDispatcher(presenter, NotificationConfig())

    alert = asyncio.run(dispatcher.notify(_contest()))

    assert presenter.calls == [("show", alert)]


def test_acknowledge_surfaces_destination_then_dismisses() -> None:
    presenter = RecordingPresenter()
    config = NotificationConfig(destination_url="https://example.test/contests")
    dispatcher = NotificationDispatcher(presenter, config)

    asyncio.run(dispatcher.on_acknowledge("contest-1921"))

    assert presenter.calls == [
        ("surface", "https://example.test/contests"),
        ("dismiss", "contest-1921"),
    ]
