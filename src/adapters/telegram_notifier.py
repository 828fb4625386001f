"""Telegram alert presenter.

Implements the core AlertPresenterPort on top of a Telethon client. Two
delivery modes share this adapter:
- saved_messages: a user session posts alerts to its own Saved Messages
- bot: a bot session posts alerts to a chat, with an inline acknowledge button
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from telethon import Button

from adapters.notification_formatting import format_alert, format_destination
from core.models import Alert

LOGGER = logging.getLogger(__name__)

ACK_BUTTON_TEXT = "Open contests"

# Matches the dedup capacity: older alerts can no longer be acknowledged.
DEFAULT_MAX_TRACKED = 100

Target = Union[str, int]


class TelegramAlertPresenter:
    """Shows, replaces, and dismisses alert messages keyed by alert key."""

    def __init__(
        self,
        client,
        target: Target,
        mode: str,
        with_buttons: bool,
        max_tracked: int = DEFAULT_MAX_TRACKED,
    ) -> None:
        self._client = client
        self._target = target
        self._mode = mode
        self._with_buttons = with_buttons
        self._messages: dict[str, int] = {}
        self._max_tracked = max_tracked

    @classmethod
    def saved_messages(cls, client, max_tracked: int = DEFAULT_MAX_TRACKED) -> "TelegramAlertPresenter":
        # User accounts cannot attach inline buttons, so acknowledgement is a reply.
        return cls(client, target="me", mode="markdown", with_buttons=False, max_tracked=max_tracked)

    @classmethod
    def bot_chat(
        cls, client, chat_id: Target, max_tracked: int = DEFAULT_MAX_TRACKED
    ) -> "TelegramAlertPresenter":
        return cls(client, target=chat_id, mode="html", with_buttons=True, max_tracked=max_tracked)

    @property
    def target(self) -> Target:
        return self._target

    def _parse_mode(self) -> str:
        return "html" if self._mode == "html" else "Markdown"

    def key_for_message(self, message_id: int) -> Optional[str]:
        """Return the alert key of a message we sent, if any."""

        for key, sent_id in self._messages.items():
            if sent_id == message_id:
                return key
        return None

    async def show(self, alert: Alert) -> None:
        """Send the alert, replacing an earlier message with the same key."""

        if alert.key in self._messages:
            await self.dismiss(alert.key)

        buttons = None
        if self._with_buttons:
            buttons = [Button.inline(ACK_BUTTON_TEXT, data=alert.key.encode("utf-8"))]

        message = await self._client.send_message(
            self._target,
            format_alert(alert, self._mode),
            parse_mode=self._parse_mode(),
            buttons=buttons,
            link_preview=False,
        )
        self._messages[alert.key] = message.id
        while len(self._messages) > self._max_tracked:
            # dicts keep insertion order, so the first key is the oldest alert.
            self._messages.pop(next(iter(self._messages)))

    @property
    def tracked_keys(self) -> list[str]:
        return list(self._messages)

    async def dismiss(self, key: str) -> None:
        """Delete the alert message for `key`; unknown keys are ignored."""

        message_id = self._messages.pop(key, None)
        if message_id is None:
            LOGGER.debug("No alert message tracked for %s", key)
            return
        await self._client.delete_messages(self._target, [message_id])

    async def surface(self, url: str) -> None:
        """Post the destination link so Telegram renders an openable preview."""

        await self._client.send_message(
            self._target,
            format_destination(url, self._mode),
            parse_mode=self._parse_mode(),
            link_preview=True,
        )
