from __future__ import annotations

import asyncio

from telethon import events

from adapters.sqlite_storage import PREF_NOTIFICATIONS_ENABLED
from adapters.telegram_events import (
    ack_key_from_callback,
    ack_key_from_reply,
    parse_notifications_command,
    register_handlers,
)
from adapters.telegram_notifier import TelegramAlertPresenter
from core.models import Alert


class DummyMessage:
    def __init__(self, message_id: int) -> None:
        self.id = message_id


class DummyReply:
    def __init__(self, reply_to_msg_id: "int | None") -> None:
        self.reply_to_msg_id = reply_to_msg_id


class DummyIncoming:
    def __init__(self, reply_to=None) -> None:
        self.reply_to = reply_to


class FakeClient:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.deleted: list[tuple[object, list[int]]] = []
        self._next_id = 100

    async def send_message(self, entity, message, **kwargs) -> DummyMessage:
        self._next_id += 1
        self.sent.append({"entity": entity, "message": message, **kwargs})
        return DummyMessage(self._next_id)

    async def delete_messages(self, entity, message_ids) -> None:
        self.deleted.append((entity, list(message_ids)))


def _callback_data(button) -> bytes:
    # Telethon returns either the raw callback button or a wrapper around it.
    for candidate in (button, getattr(button, "button", None), getattr(button, "type", None)):
        data = getattr(candidate, "data", None)
        if data is not None:
            return data
    raise AssertionError(f"No callback payload on {button!r}")


def _alert(key: str = "contest-42") -> Alert:
    return Alert(
        key=key,
        title="🏆 Contest Starting Soon!",
        body="Round 42 starts at 14:35:00",
        destination_url="https://codeforces.com/contests",
    )


def test_parse_notifications_command() -> None:
    assert parse_notifications_command("/notifications on") is True
    assert parse_notifications_command("/notifications OFF") is False
    assert parse_notifications_command("/notifications@contest_bot disable") is False
    assert parse_notifications_command("/notifications maybe") is None
    assert parse_notifications_command("/notifications") is None
    assert parse_notifications_command("hello") is None
    assert parse_notifications_command(None) is None


def test_ack_key_from_callback() -> None:
    assert ack_key_from_callback(b"contest-42") == "contest-42"
    assert ack_key_from_callback(b"other-42") is None
    assert ack_key_from_callback(b"\xff") is None
    assert ack_key_from_callback(None) is None


def test_saved_messages_presenter_tracks_and_dismisses() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.saved_messages(client)

    async def _run() -> None:
        await presenter.show(_alert())
        assert presenter.key_for_message(101) == "contest-42"
        await presenter.dismiss("contest-42")
        await presenter.dismiss("contest-42")

    asyncio.run(_run())

    assert client.sent[0]["entity"] == "me"
    assert client.sent[0]["buttons"] is None
    assert client.deleted == [("me", [101])]
    assert presenter.key_for_message(101) is None


def test_bot_presenter_attaches_ack_button() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.bot_chat(client, 555)

    asyncio.run(presenter.show(_alert()))

    sent = client.sent[0]
    assert sent["entity"] == 555
    assert sent["parse_mode"] == "html"
    [button] = sent["buttons"]
    assert ack_key_from_callback(_callback_data(button)) == "contest-42"


def test_show_with_same_key_replaces_previous_message() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.saved_messages(client)

    async def _run() -> None:
        await presenter.show(_alert())
        await presenter.show(_alert())

    asyncio.run(_run())

    assert client.deleted == [("me", [101])]
    assert presenter.key_for_message(102) == "contest-42"


def test_surface_posts_destination_link() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.saved_messages(client)

    asyncio.run(presenter.surface("https://codeforces.com/contests"))

    assert "https://codeforces.com/contests" in client.sent[0]["message"]
    assert client.sent[0]["link_preview"] is True


def test_ack_key_from_reply_matches_tracked_alert() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.saved_messages(client)
    asyncio.run(presenter.show(_alert()))

    assert ack_key_from_reply(DummyIncoming(DummyReply(101)), presenter) == "contest-42"
    assert ack_key_from_reply(DummyIncoming(DummyReply(7)), presenter) is None
    assert ack_key_from_reply(DummyIncoming(None), presenter) is None


def test_presenter_forgets_oldest_alerts_beyond_cap() -> None:
    client = FakeClient()
    presenter = TelegramAlertPresenter.saved_messages(client, max_tracked=2)

    async def _run() -> None:
        for contest_id in (1, 2, 3):
            await presenter.show(_alert(f"contest-{contest_id}"))

    asyncio.run(_run())

    assert presenter.tracked_keys == ["contest-2", "contest-3"]
    assert presenter.key_for_message(101) is None
    assert presenter.key_for_message(103) == "contest-3"


class HandlerClient(FakeClient):
    """Collects the handlers registered through `client.on(...)`."""

    def __init__(self) -> None:
        super().__init__()
        self.handlers: list[tuple[object, object]] = []

    def on(self, builder):
        def _decorator(handler):
            self.handlers.append((builder, handler))
            return handler

        return _decorator

    def message_handler(self):
        [handler] = [h for b, h in self.handlers if isinstance(b, events.NewMessage)]
        return handler

    def callback_handler(self):
        [handler] = [h for b, h in self.handlers if b is events.CallbackQuery]
        return handler


class DummyEvent:
    def __init__(
        self,
        raw_text: str = "",
        sender_id: "int | None" = None,
        reply_to=None,
        data: "bytes | None" = None,
    ) -> None:
        self.raw_text = raw_text
        self.sender_id = sender_id
        self.message = DummyIncoming(reply_to)
        self.data = data
        self.replies: list[str] = []
        self.answered = False

    async def reply(self, text: str) -> None:
        self.replies.append(text)

    async def answer(self) -> None:
        self.answered = True


class FakePreferenceStorage:
    def __init__(self) -> None:
        self.writes: list[tuple[str, object]] = []

    def set_preference(self, key: str, value) -> None:
        self.writes.append((key, value))


class FakeScheduler:
    def __init__(self) -> None:
        self.changes = 0

    def on_preferences_changed(self) -> None:
        self.changes += 1


class RecordingDispatcher:
    def __init__(self) -> None:
        self.acknowledged: list[str] = []

    async def on_acknowledge(self, key: str) -> None:
        self.acknowledged.append(key)


def _wire(bot_mode: bool, target=None, command_sender_ids=()):
    client = HandlerClient()
    if bot_mode:
        presenter = TelegramAlertPresenter.bot_chat(client, target)
    else:
        presenter = TelegramAlertPresenter.saved_messages(client)
    storage = FakePreferenceStorage()
    scheduler = FakeScheduler()
    dispatcher = RecordingDispatcher()
    register_handlers(
        client,
        presenter,
        dispatcher,
        scheduler,
        storage,
        bot_mode,
        command_sender_ids=command_sender_ids,
    )
    return client, presenter, storage, scheduler, dispatcher


def test_saved_messages_command_stores_preference_and_rearms() -> None:
    client, _, storage, scheduler, dispatcher = _wire(bot_mode=False)
    event = DummyEvent("/notifications off")

    asyncio.run(client.message_handler()(event))

    assert storage.writes == [(PREF_NOTIFICATIONS_ENABLED, False)]
    assert scheduler.changes == 1
    assert event.replies == ["Contest notifications disabled."]
    assert dispatcher.acknowledged == []


def test_saved_messages_reply_acknowledges_alert() -> None:
    client, presenter, storage, scheduler, dispatcher = _wire(bot_mode=False)

    async def _run() -> None:
        await presenter.show(_alert())
        await client.message_handler()(DummyEvent("thanks", reply_to=DummyReply(101)))
        await client.message_handler()(DummyEvent("unrelated", reply_to=DummyReply(7)))

    asyncio.run(_run())

    assert dispatcher.acknowledged == ["contest-42"]
    assert storage.writes == []
    assert scheduler.changes == 0


def test_saved_messages_mode_registers_no_callback_handler() -> None:
    client, *_ = _wire(bot_mode=False)
    assert all(builder is not events.CallbackQuery for builder, _ in client.handlers)


def test_bot_button_click_acknowledges_alert() -> None:
    client, _, _, _, dispatcher = _wire(bot_mode=True, target=555)
    click = DummyEvent(data=b"contest-42")
    stray = DummyEvent(data=b"something-else")

    async def _run() -> None:
        await client.callback_handler()(click)
        await client.callback_handler()(stray)

    asyncio.run(_run())

    assert click.answered
    assert not stray.answered
    assert dispatcher.acknowledged == ["contest-42"]


def test_bot_group_command_from_unlisted_sender_is_ignored() -> None:
    client, _, storage, scheduler, _ = _wire(bot_mode=True, target=-100123, command_sender_ids=[7])
    event = DummyEvent("/notifications off", sender_id=999)

    asyncio.run(client.message_handler()(event))

    assert storage.writes == []
    assert scheduler.changes == 0
    assert event.replies == []


def test_bot_group_command_from_listed_sender_is_applied() -> None:
    client, _, storage, scheduler, _ = _wire(bot_mode=True, target=-100123, command_sender_ids=[7])

    asyncio.run(client.message_handler()(DummyEvent("/notifications on", sender_id=7)))

    assert storage.writes == [(PREF_NOTIFICATIONS_ENABLED, True)]
    assert scheduler.changes == 1


def test_bot_private_chat_owner_may_switch_without_listing() -> None:
    client, _, storage, scheduler, _ = _wire(bot_mode=True, target=555)

    asyncio.run(client.message_handler()(DummyEvent("/notifications off", sender_id=555)))

    assert storage.writes == [(PREF_NOTIFICATIONS_ENABLED, False)]
    assert scheduler.changes == 1
