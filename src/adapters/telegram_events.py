"""Telegram-to-core event mapping adapter.

Routes what the user does with alerts in Telegram back into the core:
- acknowledge (inline button in bot mode, a reply in Saved Messages)
- `/notifications on|off` commands, which update the stored preference and
  signal the scheduler to re-arm its poll trigger

This keeps Telethon-specific details out of the core scheduler.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from telethon import events

from adapters.sqlite_storage import PREF_NOTIFICATIONS_ENABLED
from adapters.telegram_notifier import TelegramAlertPresenter
from core.dispatcher import NotificationDispatcher
from core.errors import StorageError
from core.models import ALERT_KEY_PREFIX
from core.scheduler import ContestScheduler

LOGGER = logging.getLogger(__name__)

COMMAND = "/notifications"
_SWITCH_VALUES = {"on": True, "enable": True, "off": False, "disable": False}


def parse_notifications_command(text: Optional[str]) -> Optional[bool]:
    """Return the requested enabled state, or None if the text is not a command."""

    if not text:
        return None
    parts = text.strip().split()
    if len(parts) != 2:
        return None
    # Bots in groups receive "/notifications@botname".
    command = parts[0].split("@", 1)[0].lower()
    if command != COMMAND:
        return None
    return _SWITCH_VALUES.get(parts[1].lower())


def ack_key_from_callback(data: Optional[bytes]) -> Optional[str]:
    """Decode an inline button payload into an alert key."""

    if not data:
        return None
    try:
        key = data.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if not key.startswith(ALERT_KEY_PREFIX):
        return None
    return key


def ack_key_from_reply(message, presenter: TelegramAlertPresenter) -> Optional[str]:
    """Return the alert key a message replies to, if it replies to an alert."""

    reply_to = getattr(message, "reply_to", None)
    reply_id = getattr(reply_to, "reply_to_msg_id", None)
    if reply_id is None:
        return None
    return presenter.key_for_message(reply_id)


def register_handlers(
    client,
    presenter: TelegramAlertPresenter,
    dispatcher: NotificationDispatcher,
    scheduler: ContestScheduler,
    storage,
    bot_mode: bool,
    command_sender_ids: Iterable[int] = (),
) -> None:
    """Attach acknowledge and preference handlers to the Telethon client.

    In bot mode the chat may be a group, so `/notifications` is only honoured
    from `command_sender_ids`, or from the chat itself when it is a private chat
    (a private chat id equals the user id).
    """

    allowed_senders = set(command_sender_ids)
    if bot_mode and isinstance(presenter.target, int) and presenter.target > 0:
        allowed_senders.add(presenter.target)

    async def _apply_switch(event, enabled: bool) -> None:
        try:
            storage.set_preference(PREF_NOTIFICATIONS_ENABLED, enabled)
        except StorageError:
            LOGGER.exception("Could not store notification preference")
            return
        scheduler.on_preferences_changed()
        await event.reply(f"Contest notifications {'enabled' if enabled else 'disabled'}.")

    if bot_mode:
        message_filter = events.NewMessage(chats=presenter.target, incoming=True)

        @client.on(events.CallbackQuery)
        async def _on_callback(event) -> None:
            key = ack_key_from_callback(event.data)
            if key is None:
                return
            try:
                await event.answer()
                await dispatcher.on_acknowledge(key)
            except Exception:
                LOGGER.exception("Error while acknowledging %s", key)
    else:
        message_filter = events.NewMessage(chats="me", outgoing=True)

    @client.on(message_filter)
    async def _on_message(event) -> None:
        try:
            enabled = parse_notifications_command(event.raw_text)
            if enabled is not None:
                if bot_mode and event.sender_id not in allowed_senders:
                    LOGGER.warning("Ignoring %s from sender %s", COMMAND, event.sender_id)
                    return
                await _apply_switch(event, enabled)
                return
            if bot_mode:
                return
            key = ack_key_from_reply(event.message, presenter)
            if key is not None:
                await dispatcher.on_acknowledge(key)
        except Exception:
            LOGGER.exception("Error while handling Telegram message")
