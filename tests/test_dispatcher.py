from __future__ import annotations

import asyncio

from core.config import DiscoveryConfig, RecorderConfig, RestoreConfig, SessionConfig
from core.discovery import HistoryDiscoverer
from core.dispatcher import RESTORE_SOURCE_PREFIX, UpdateDispatcher
from core.models import BackupEntry, Channel, Content, ContentKind, UserRecord
from core.recorder import BackupRecorder
from core.repository import BackupRepository
from core.restore import RestoreOrchestrator
from core.sessions import RestoreSessions
from core.tasks import TaskRunner
from fakes import FakeClock, FakeGateway, FakeStore, no_sleep, text_post

USER = "42"
NEWS = "-1001"
ARCHIVE = "-1002"

CHATS = {
    "@news": {"id": -1001, "title": "News", "username": "news", "type": "channel"},
    NEWS: {"id": -1001, "title": "News", "username": "news", "type": "channel"},
    "@archive": {"id": -1002, "title": "Archive", "type": "channel"},
    ARCHIVE: {"id": -1002, "title": "Archive", "type": "channel"},
}


class Harness:
    def __init__(self, messages=None) -> None:
        self.store = FakeStore()
        self.repository = BackupRepository(self.store)
        self.gateway = FakeGateway(messages=messages, chats=dict(CHATS))
        self.clock = FakeClock()
        self.sessions = RestoreSessions(self.store, SessionConfig(ttl_seconds=600), clock=self.clock)
        self.runner = TaskRunner()
        recorder = BackupRecorder(self.gateway, self.repository, RecorderConfig())
        discoverer = HistoryDiscoverer(
            self.gateway,
            self.repository,
            DiscoveryConfig(upper_bound=5, failure_cutoff=50, probe_delay=0),
            sleep=no_sleep,
            clock=self.clock,
        )
        self.dispatcher = UpdateDispatcher(
            self.gateway,
            self.repository,
            self.sessions,
            recorder,
            discoverer,
            lambda: RestoreOrchestrator(
                self.gateway, self.repository, RestoreConfig(send_delay=0), sleep=no_sleep, clock=self.clock
            ),
            self.runner,
            clock=self.clock,
        )

    def handle(self, *updates) -> None:
        async def _go() -> None:
            for update in updates:
                await self.dispatcher.handle_update(update)
                await self.runner.drain()

        asyncio.run(_go())

    def replies(self) -> list[str]:
        return self.gateway.texts_to(USER)

    def register(self, channel_id: str = NEWS, title: str = "News") -> None:
        user = self.repository.ensure_user(USER)
        user.channels.append(Channel(channel_id, title))
        self.repository.save_user(user)


def _message(text: str, **extra) -> dict:
    return {
        "update_id": 1,
        "message": {
            "message_id": 1,
            "date": 1_700_000_000,
            "from": {"id": int(USER)},
            "chat": {"id": int(USER), "type": "private"},
            "text": text,
            **extra,
        },
    }


def _callback(data: str) -> dict:
    return {
        "update_id": 2,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": int(USER)},
            "message": {"message_id": 9, "chat": {"id": int(USER)}},
            "data": data,
        },
    }


def test_start_creates_user_record() -> None:
    harness = Harness()

    harness.handle(_message("/start"))

    assert harness.repository.list_user_ids() == [USER]
    assert "Welcome" in harness.replies()[0]


def test_addchannel_registers_and_scans_history() -> None:
    harness = Harness(messages={(NEWS, 4): {"text": "older post", "date": 1_690_000_000}})

    harness.handle(_message("/addchannel @news"))

    user = harness.repository.get_user(USER)
    assert [channel.id for channel in user.channels] == [NEWS]
    assert user.channels[0].title == "News"
    assert user.channels[0].added_at == int(harness.clock.now * 1000)
    texts = harness.replies()
    assert texts[0] == "⏳ Checking channel..."
    assert texts[1].startswith("✅ <b>Channel added!</b>")
    assert "finished" in texts[-1]
    assert harness.repository.message_ids(NEWS) == [4]


def test_addchannel_twice_reports_duplicate_without_rescan() -> None:
    harness = Harness()
    harness.handle(_message("/addchannel @news"))
    forwards_before = len(harness.gateway.forwards)

    harness.handle(_message(f"/addchannel {NEWS}"))

    assert "already added" in harness.replies()[-1]
    assert len(harness.repository.get_user(USER).channels) == 1
    assert len(harness.gateway.forwards) == forwards_before


def test_addchannel_rejects_unresolvable_reference() -> None:
    harness = Harness()

    harness.handle(_message("/addchannel not-a-channel"))

    assert "Cannot identify the channel" in harness.replies()[-1]
    assert harness.repository.get_user(USER).channels == []


def test_addchannel_reports_unreachable_channel() -> None:
    harness = Harness()

    harness.handle(_message("/addchannel -100999"))

    assert "Cannot access the channel" in harness.replies()[-1]
    assert harness.repository.get_user(USER).channels == []


def test_removechannel_keeps_backups() -> None:
    harness = Harness()
    harness.register()
    harness.repository.save_entry(NEWS, BackupEntry(1, 1, Content(ContentKind.TEXT, "keep me")))

    harness.handle(_message(f"/removechannel {NEWS}"))

    assert harness.repository.get_user(USER).channels == []
    assert harness.repository.count_entries(NEWS) == 1
    assert "Channel removed" in harness.replies()[-1]


def test_channels_lists_counts() -> None:
    harness = Harness()
    harness.register()
    harness.repository.save_entry(NEWS, BackupEntry(1, 1, Content(ContentKind.TEXT, "a")))
    harness.repository.save_entry(NEWS, BackupEntry(2, 1, Content(ContentKind.TEXT, "b")))

    harness.handle(_message("/channels"))

    assert "2 messages backed up" in harness.replies()[-1]


def test_restore_button_flow_replays_into_target() -> None:
    harness = Harness()
    harness.register()
    for message_id in (1, 2):
        harness.repository.save_entry(NEWS, BackupEntry(message_id, 1, Content(ContentKind.TEXT, f"post {message_id}")))

    harness.handle(_message("/restore"))
    keyboard = harness.gateway.markups[-1]
    assert keyboard["inline_keyboard"][0][0]["callback_data"] == f"{RESTORE_SOURCE_PREFIX}{NEWS}"

    harness.handle(_callback(f"{RESTORE_SOURCE_PREFIX}{NEWS}"))
    assert harness.gateway.answered == ["cb-1"]
    assert harness.sessions.get(USER) is not None

    harness.handle(_message("@archive"))

    assert harness.sessions.get(USER) is None
    assert [(chat, value) for chat, _, value, _ in harness.gateway.content] == [
        (ARCHIVE, "post 1"),
        (ARCHIVE, "post 2"),
    ]
    assert harness.replies()[-1].startswith("✅ <b>Restore finished!</b>")
    assert "Restored: 2" in harness.replies()[-1]


def test_restore_direct_form_with_empty_source() -> None:
    harness = Harness()

    harness.handle(_message(f"/restore {NEWS} {ARCHIVE}"))

    assert "No backups found" in harness.replies()[-1]
    assert harness.gateway.content == []


def test_restore_with_unreachable_target() -> None:
    harness = Harness()
    harness.repository.save_entry(NEWS, BackupEntry(1, 1, Content(ContentKind.TEXT, "x")))

    harness.handle(_message(f"/restore {NEWS} -100777"))

    assert "Cannot access the channels" in harness.replies()[-1]


def test_cancel_clears_pending_restore() -> None:
    harness = Harness()
    harness.register()
    harness.handle(_callback(f"{RESTORE_SOURCE_PREFIX}{NEWS}"))

    harness.handle(_message("/cancel"))

    assert harness.replies()[-1] == "✖️ Restore cancelled."
    assert harness.sessions.get(USER) is None

    harness.handle(_message("/cancel"))
    assert harness.replies()[-1] == "Nothing to cancel."


def test_expired_session_ignores_plain_text() -> None:
    harness = Harness()
    harness.register()
    harness.repository.save_entry(NEWS, BackupEntry(1, 1, Content(ContentKind.TEXT, "x")))
    harness.handle(_callback(f"{RESTORE_SOURCE_PREFIX}{NEWS}"))
    sent_before = len(harness.gateway.sent)

    harness.clock.advance(601)
    harness.handle(_message("@archive"))

    assert harness.gateway.content == []
    assert len(harness.gateway.sent) == sent_before
    assert harness.store.get(f"restore_state:{USER}") is None


def test_notify_toggle() -> None:
    harness = Harness()

    harness.handle(_message("/notify off"))
    assert harness.repository.notifications_enabled(USER) is False
    assert "<b>off</b>" in harness.replies()[-1]

    harness.handle(_message("/notify on"))
    assert harness.repository.notifications_enabled(USER) is True


def test_manual_backup_saves_forwarded_messages() -> None:
    harness = Harness()
    harness.register()
    forwarded = {"forward_origin": {"type": "channel", "chat": {"id": -1001}, "message_id": 77, "date": 1_650_000_000}}

    harness.handle(_message(f"/manualbackup {NEWS}"))
    harness.handle(_message("saved by hand", **forwarded))
    harness.handle(_message("saved by hand", **forwarded))

    entry = harness.repository.get_entry(NEWS, 77)
    assert entry.manual_backup is True
    assert entry.text == "saved by hand"
    assert harness.replies()[-2] == "💾 Message #77 saved."
    assert harness.replies()[-1] == "⏭ Message #77 was already backed up."

    harness.handle(_message("/stopbackup"))
    assert harness.repository.armed_manual_backup(USER) is None


def test_manual_backup_rejects_other_channels() -> None:
    harness = Harness()
    harness.register()
    harness.handle(_message(f"/manualbackup {NEWS}"))

    harness.handle(
        _message("elsewhere", forward_origin={"type": "channel", "chat": {"id": -1005}, "message_id": 3, "date": 1})
    )

    assert "Forward messages from the channel you chose" in harness.replies()[-1]
    assert harness.repository.count_entries("-1005") == 0


def test_channel_post_is_recorded() -> None:
    harness = Harness()
    harness.register()

    harness.handle({"update_id": 3, "channel_post": text_post(NEWS, 11, "breaking")})

    assert harness.repository.get_entry(NEWS, 11).auto_backup is True
    assert "New post #11" in harness.replies()[-1]


def test_unknown_command() -> None:
    harness = Harness()

    harness.handle(_message("/frobnicate"))

    assert harness.replies()[-1] == "Unknown command. Send /help for the list."


def test_handler_errors_are_swallowed() -> None:
    harness = Harness()

    async def broken(*args, **kwargs):
        raise RuntimeError("network down")

    harness.gateway.send_message = broken
    # Replies fail, but the update must still be fully handled without raising.
    harness.handle(_message("/start"))

    assert harness.repository.list_user_ids() == [USER]


def test_unexpected_failure_tells_the_user() -> None:
    harness = Harness()

    def broken(user_id):
        raise RuntimeError("store offline")

    harness.repository.ensure_user = broken
    harness.handle(_message("/channels"))

    assert harness.replies()[-1].startswith("❌ <b>Something went wrong.</b>")
