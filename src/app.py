"""Application entry point for the contestwatch notifier."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.codeforces_client import CodeforcesClient
from adapters.sqlite_storage import PREF_HANDLE, PREF_NOTIFICATIONS_ENABLED, SQLiteStorage
from adapters.telegram_events import register_handlers
from adapters.telegram_notifier import TelegramAlertPresenter
from client import bot_token, build_client
from core.config import NotificationConfig, ScheduleConfig, WindowConfig
from core.dispatcher import NotificationDispatcher
from core.models import Preferences
from core.scheduler import ContestScheduler
from get_session import authorize

NAME = "CONTESTWATCH"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/contestwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _build_storage() -> SQLiteStorage:
    storage = SQLiteStorage(settings.DB_PATH, capacity=settings.DEDUP_CAPACITY)
    storage.init_db()
    return storage


def _default_preferences() -> Preferences:
    return Preferences(
        notifications_enabled=settings.DEFAULT_NOTIFICATIONS_ENABLED,
        handle=settings.DEFAULT_HANDLE,
    )


def _write_pid() -> None:
    with open(settings.PID_PATH, "w", encoding="utf-8") as handle:
        handle.write(str(os.getpid()))


def _remove_pid() -> None:
    try:
        os.remove(settings.PID_PATH)
    except FileNotFoundError:
        pass


def _signal_watcher() -> bool:
    """Tell a running watcher that preferences changed. Returns False if none runs."""

    sighup = getattr(signal, "SIGHUP", None)
    if sighup is None or not os.path.exists(settings.PID_PATH):
        return False
    with open(settings.PID_PATH, "r", encoding="utf-8") as handle:
        raw_pid = handle.read().strip()
    try:
        os.kill(int(raw_pid), sighup)
    except (ValueError, ProcessLookupError):
        logging.getLogger(__name__).warning("Stale pid file %s", settings.PID_PATH)
        return False
    return True


async def _connect_client(client, bot_mode: bool) -> None:
    if bot_mode:
        await client.start(bot_token=bot_token())
        return
    await client.connect()
    await authorize(client)


async def _watch(client, bot_mode: bool) -> None:
    logger = logging.getLogger(__name__)

    storage = _build_storage()
    contest_client = CodeforcesClient(
        api_url=settings.CONTEST_API_URL,
        timeout_seconds=settings.FETCH_TIMEOUT_SECONDS,
    )

    await _connect_client(client, bot_mode)

    # Select the presenter based on configuration to keep the core
    # scheduler independent from delivery details.
    if bot_mode:
        if not settings.BOT_CHAT_ID:
            raise RuntimeError("notifications.bot_chat_id is required for bot notifications")
        presenter = TelegramAlertPresenter.bot_chat(
            client, int(settings.BOT_CHAT_ID), max_tracked=settings.DEDUP_CAPACITY
        )
    else:
        presenter = TelegramAlertPresenter.saved_messages(client, max_tracked=settings.DEDUP_CAPACITY)
    logger.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    dispatcher = NotificationDispatcher(
        presenter,
        NotificationConfig(destination_url=settings.CONTESTS_PAGE_URL),
    )
    scheduler = ContestScheduler(
        source=contest_client,
        store=storage,
        preferences=storage,
        dispatcher=dispatcher,
        schedule=ScheduleConfig(
            poll_interval=timedelta(minutes=settings.POLL_INTERVAL_MINUTES),
            cleanup_interval=timedelta(hours=settings.CLEANUP_INTERVAL_HOURS),
        ),
        window=WindowConfig(
            min_lead=timedelta(minutes=settings.WINDOW_MIN_LEAD_MINUTES),
            max_lead=timedelta(minutes=settings.WINDOW_MAX_LEAD_MINUTES),
        ),
        default_preferences=_default_preferences(),
    )
    register_handlers(
        client,
        presenter,
        dispatcher,
        scheduler,
        storage,
        bot_mode,
        command_sender_ids=settings.COMMAND_SENDER_IDS,
    )

    sighup = getattr(signal, "SIGHUP", None)
    loop = asyncio.get_running_loop()
    if sighup is not None:
        loop.add_signal_handler(sighup, scheduler.on_preferences_changed)

    _write_pid()
    scheduler.start()
    logger.info("Client connected. Watching for upcoming contests...")
    try:
        await client.run_until_disconnected()
    finally:
        if sighup is not None:
            loop.remove_signal_handler(sighup)
        await scheduler.stop()
        await contest_client.close()
        _remove_pid()


def _run() -> None:
    _print_banner()
    _configure_logging()
    logging.getLogger(__name__).info("Starting contestwatch")

    if settings.NOTIFICATION_METHOD not in {"saved_messages", "bot"}:
        raise RuntimeError("notification_method must be 'saved_messages' or 'bot'")
    bot_mode = settings.NOTIFICATION_METHOD == "bot"

    client = build_client(bot=bot_mode)
    client.loop.run_until_complete(_watch(client, bot_mode))


def _prefs(args: argparse.Namespace) -> None:
    _configure_logging()
    storage = _build_storage()
    storage.seed_preferences(_default_preferences())

    changed = False
    if args.enabled is not None:
        storage.set_preference(PREF_NOTIFICATIONS_ENABLED, args.enabled)
        changed = True
    if args.handle is not None:
        storage.set_preference(PREF_HANDLE, args.handle)
        changed = True

    prefs = storage.load_preferences()
    print(f"notifications_enabled = {str(prefs.notifications_enabled).lower()}")
    print(f"handle = {prefs.handle or '-'}")

    if changed:
        if _signal_watcher():
            print("Running watcher notified.")
        else:
            print("No running watcher found; changes apply on next start.")


def _login() -> None:
    _print_banner()
    _configure_logging()
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        await authorize(client)
        await client.disconnect()

    client.loop.run_until_complete(_run_login())


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="contestwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the contest watcher")
    subparsers.add_parser("login", help="Log in the Telegram user session")
    prefs_parser = subparsers.add_parser("prefs", help="Show or change preferences")
    switch = prefs_parser.add_mutually_exclusive_group()
    switch.add_argument("--enable", dest="enabled", action="store_const", const=True)
    switch.add_argument("--disable", dest="enabled", action="store_const", const=False)
    prefs_parser.add_argument("--handle", default=None)

    args = parser.parse_args(argv)
    if args.command == "prefs":
        _prefs(args)
        return
    if args.command == "login":
        _login()
        return
    _run()


if __name__ == "__main__":
    main()
