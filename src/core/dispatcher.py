"""Notification dispatch (core domain).

Builds one alert per contest and hands it to the presentation adapter. The
alert key is derived from the contest id so the platform can replace or
dedupe alerts on its own.
"""

from __future__ import annotations

import logging
from datetime import datetime

from core.config import NotificationConfig
from core.models import Alert, ContestRecord, alert_key
from core.ports import AlertPresenterPort

LOGGER = logging.getLogger(__name__)

ALERT_TITLE = "🏆 Contest Starting Soon!"


def format_start_time(start: datetime) -> str:
    """Return the contest start as a local wall-clock time string."""

    return start.astimezone().strftime("%H:%M:%S")


def build_alert(contest: ContestRecord, destination_url: str) -> Alert:
    return Alert(
        key=alert_key(contest.contest_id),
        title=ALERT_TITLE,
        body=f"{contest.name} starts at {format_start_time(contest.start)}",
        destination_url=destination_url,
    )


class NotificationDispatcher:
    """Emit contest alerts and react to their acknowledgement."""

    def __init__(self, presenter: AlertPresenterPort, config: NotificationConfig) -> None:
        self._presenter = presenter
        self._config = config

    async def notify(self, contest: ContestRecord) -> Alert:
        """Emit exactly one alert for the contest."""

        alert = build_alert(contest, self._config.destination_url)
        await self._presenter.show(alert)
        LOGGER.info("Notification sent: %s", alert.key)
        return alert

    async def on_acknowledge(self, key: str) -> None:
        """Surface the contests page and dismiss the acknowledged alert."""

        await self._presenter.surface(self._config.destination_url)
        await self._presenter.dismiss(key)
        LOGGER.info("Alert acknowledged: %s", key)
