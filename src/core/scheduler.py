"""Contest polling scheduler (core domain).

The scheduler owns two independent recurring triggers:
1) Poll cycle: fetch contests, keep the due ones, notify those not yet in
   the dedup store and record them.
2) Cleanup cycle: reset the dedup store, regardless of preferences.

Both handlers run on one event loop and share a single lock around store
mutations, so a cleanup can never land between a poll's check and record.
Clock and sleeper are injected so tests can drive the triggers directly.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from core.config import ScheduleConfig, WindowConfig
from core.dispatcher import NotificationDispatcher
from core.errors import StorageError
from core.models import Preferences
from core.ports import ContestSourcePort, DedupStorePort, PreferencesPort
from core.window import is_due

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContestScheduler:
    """Wires the contest source, window, dispatcher, and dedup store together."""

    def __init__(
        self,
        source: ContestSourcePort,
        store: DedupStorePort,
        preferences: PreferencesPort,
        dispatcher: NotificationDispatcher,
        schedule: ScheduleConfig = ScheduleConfig(),
        window: WindowConfig = WindowConfig(),
        default_preferences: Preferences = Preferences(),
        clock: Clock = utc_now,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._source = source
        self._store = store
        self._preferences = preferences
        self._dispatcher = dispatcher
        self._schedule = schedule
        self._window = window
        self._default_preferences = default_preferences
        self._clock = clock
        self._sleep = sleep

        self._store_lock = asyncio.Lock()
        self._poll_task: Optional[asyncio.Task] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self._poll_armed = False
        self._poll_running = False

    @property
    def poll_armed(self) -> bool:
        return self._poll_armed

    @property
    def poll_running(self) -> bool:
        return self._poll_running

    def _notifications_enabled(self) -> bool:
        return self._preferences.load_preferences().notifications_enabled

    # -- poll cycle ---------------------------------------------------------

    async def run_poll_cycle(self) -> int:
        """Run one poll cycle and return the number of alerts sent.

        A cycle started while another one is in flight is skipped rather than
        queued.
        """

        if self._poll_running:
            LOGGER.debug("Poll cycle already in flight, skipping")
            return 0

        self._poll_running = True
        try:
            return await self._poll_once()
        except StorageError:
            LOGGER.exception("Storage error during poll cycle, skipping")
            return 0
        finally:
            self._poll_running = False

    async def _poll_once(self) -> int:
        if not self._notifications_enabled():
            return 0

        result = await self._source.fetch_contests()
        if not result.ok:
            # The next scheduled poll is the retry.
            LOGGER.warning("Failed to fetch contests: %s", result.error)
            return 0

        now = self._clock()
        due = [contest for contest in result.contests if is_due(now, contest, self._window)]
        if not due:
            return 0

        sent = 0
        async with self._store_lock:
            for contest in due:
                if self._store.contains(contest.contest_id):
                    continue
                try:
                    await self._dispatcher.notify(contest)
                except Exception:
                    # Not recorded, so the next poll inside the window retries it.
                    LOGGER.exception("Failed to notify contest %s", contest.contest_id)
                    continue
                self._store.record(contest.contest_id)
                sent += 1
        return sent

    async def _poll_loop(self) -> None:
        interval = self._schedule.poll_interval.total_seconds()
        while self._poll_armed:
            try:
                await self.run_poll_cycle()
            except Exception:
                LOGGER.exception("Unexpected error during poll cycle")
            if not self._poll_armed:
                break
            await self._sleep(interval)

    # -- cleanup cycle ------------------------------------------------------

    async def run_cleanup_cycle(self) -> bool:
        """Clear the dedup store. Returns False when storage failed."""

        try:
            async with self._store_lock:
                self._store.clear()
        except StorageError:
            LOGGER.exception("Storage error during cleanup cycle, skipping")
            return False
        LOGGER.info("Cleared old notification history")
        return True

    def initial_cleanup_delay(self) -> float:
        """Seconds until the first cleanup, counted from the last persisted clear."""

        period = self._schedule.cleanup_interval
        try:
            last_cleared = self._store.last_cleared_at()
        except StorageError:
            LOGGER.exception("Could not read last cleanup time")
            return period.total_seconds()
        if last_cleared is None:
            return period.total_seconds()
        remaining = last_cleared + period - self._clock()
        return max(remaining.total_seconds(), 0.0)

    async def _cleanup_loop(self) -> None:
        interval = self._schedule.cleanup_interval.total_seconds()
        await self._sleep(self.initial_cleanup_delay())
        while True:
            await self.run_cleanup_cycle()
            await self._sleep(interval)

    # -- arming -------------------------------------------------------------

    def start(self) -> None:
        """Seed default preferences, then arm cleanup and (if enabled) polling."""

        try:
            self._preferences.seed_preferences(self._default_preferences)
        except StorageError:
            LOGGER.exception("Could not seed default preferences")

        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            LOGGER.info(
                "Cleanup trigger armed every %s",
                self._schedule.cleanup_interval,
            )
        self.rearm()

    def on_preferences_changed(self) -> None:
        """Handle the explicit preferences-changed signal from the presentation layer."""

        LOGGER.info("Preferences changed, re-evaluating poll trigger")
        self.rearm()

    def rearm(self) -> bool:
        """Arm or disarm the poll trigger from the current preference."""

        try:
            enabled = self._notifications_enabled()
        except StorageError:
            LOGGER.exception("Could not read preferences, poll trigger unchanged")
            return self._poll_armed

        if enabled:
            self._arm_poll()
        else:
            self._disarm_poll()
        return enabled

    def _arm_poll(self) -> None:
        self._poll_armed = True
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.create_task(self._poll_loop())
        LOGGER.info("Poll trigger armed every %s", self._schedule.poll_interval)

    def _disarm_poll(self) -> None:
        self._poll_armed = False
        task = self._poll_task
        if task is None or task.done():
            self._poll_task = None
            return
        # A cycle in flight is left to finish; its loop exits on the flag.
        if not self._poll_running:
            task.cancel()
            self._poll_task = None
        LOGGER.info("Poll trigger disarmed")

    async def stop(self) -> None:
        """Cancel both triggers. An in-flight poll is abandoned."""

        self._poll_armed = False
        tasks = [task for task in (self._poll_task, self._cleanup_task) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._poll_task = None
        self._cleanup_task = None
