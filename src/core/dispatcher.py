"""Inbound update dispatch and operator commands.

Channel posts go straight to the recorder. Private messages are routed by
command prefix; long-running work (history scans, restores) is handed to the
background task runner so the triggering update returns immediately.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from core import replies
from core.content import forwarded_origin
from core.discovery import HistoryDiscoverer
from core.errors import ChannelResolutionError, GatewayError
from core.models import Channel, RecordStatus
from core.ports import ChannelGateway
from core.progress import MessageRestoreSink, StatusMessage
from core.recorder import BackupRecorder
from core.repository import BackupRepository
from core.restore import RestoreOrchestrator
from core.sessions import RestoreSessions
from core.tasks import TaskRunner

LOGGER = logging.getLogger(__name__)

CHANNEL_ID_RE = re.compile(r"^-?\d+$")
RESTORE_SOURCE_PREFIX = "restore_src:"


@dataclass(frozen=True)
class Incoming:
    """A private message from an operator."""

    user_id: str
    chat_id: str
    text: str
    message: dict[str, Any]


async def resolve_channel_ref(gateway: ChannelGateway, raw_value: str) -> str:
    """Turn ``@handle`` or a numeric id into a chat id string."""

    value = raw_value.strip()
    if value.startswith("@") and len(value) > 1:
        try:
            chat = (await gateway.get_chat(value)).require("getChat")
        except GatewayError as exc:
            raise ChannelResolutionError(value, exc.description) from exc
        if not isinstance(chat, dict) or "id" not in chat:
            raise ChannelResolutionError(value, "chat not found")
        return str(chat["id"])
    if CHANNEL_ID_RE.match(value):
        return value
    raise ChannelResolutionError(value, "expected @username or a numeric id")


class UpdateDispatcher:
    """Entry point for every inbound webhook update."""

    def __init__(
        self,
        gateway: ChannelGateway,
        repository: BackupRepository,
        sessions: RestoreSessions,
        recorder: BackupRecorder,
        discoverer: HistoryDiscoverer,
        restorer_factory: Callable[[], RestoreOrchestrator],
        runner: TaskRunner,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._sessions = sessions
        self._recorder = recorder
        self._discoverer = discoverer
        self._restorer_factory = restorer_factory
        self._runner = runner
        self._clock = clock
        self._commands: dict[str, Callable[[Incoming, list[str]], Awaitable[None]]] = {
            "/start": self._cmd_start,
            "/help": self._cmd_help,
            "/addchannel": self._cmd_addchannel,
            "/removechannel": self._cmd_removechannel,
            "/channels": self._cmd_channels,
            "/backup": self._cmd_backup,
            "/restore": self._cmd_restore,
            "/notify": self._cmd_notify,
            "/manualbackup": self._cmd_manualbackup,
            "/stopbackup": self._cmd_stopbackup,
        }

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Handle one update; errors are logged and never propagate."""

        try:
            if "channel_post" in update:
                await self._on_channel_post(update["channel_post"])
            elif "callback_query" in update:
                await self._on_callback(update["callback_query"])
            elif "message" in update:
                await self._on_message(update["message"])
        except Exception:
            LOGGER.exception("Error while handling update %s", update.get("update_id"))
            chat = ((update.get("message") or {}).get("chat") or {})
            if chat.get("id") is not None:
                await self._reply(str(chat["id"]), replies.request_failed())

    async def _on_channel_post(self, post: dict[str, Any]) -> None:
        chat = post.get("chat") or {}
        if chat.get("id") is None or post.get("message_id") is None:
            return
        await self._recorder.record_channel_post(str(chat["id"]), int(post["message_id"]), post)

    async def _on_message(self, message: dict[str, Any]) -> None:
        sender = message.get("from") or {}
        if sender.get("id") is None:
            return
        user_id = str(sender["id"])
        chat_id = str((message.get("chat") or {}).get("id", user_id))
        incoming = Incoming(user_id, chat_id, (message.get("text") or "").strip(), message)
        self._repository.ensure_user(user_id)

        if forwarded_origin(message) and self._repository.armed_manual_backup(user_id):
            await self._capture_forward(incoming)
            return

        if incoming.text.startswith("/"):
            parts = incoming.text.split()
            command = parts[0].split("@", 1)[0].lower()
            # Any command abandons a pending button-driven restore.
            pending = self._sessions.get(user_id)
            if pending:
                self._sessions.clear(user_id)
            if command == "/cancel":
                await self._reply(chat_id, replies.restore_cancelled() if pending else replies.nothing_to_cancel())
                return
            handler = self._commands.get(command)
            if handler is None:
                await self._reply(chat_id, replies.unknown_command())
                return
            await handler(incoming, parts[1:])
            return

        session = self._sessions.get(user_id)
        if session:
            self._sessions.clear(user_id)
            await self._restore_to_reference(incoming, session.source_channel_id, incoming.text)

    async def _on_callback(self, callback: dict[str, Any]) -> None:
        callback_id = str(callback.get("id", ""))
        sender = callback.get("from") or {}
        data = str(callback.get("data") or "")
        if sender.get("id") is None or not data.startswith(RESTORE_SOURCE_PREFIX):
            await self._answer(callback_id)
            return

        user_id = str(sender["id"])
        source_id = data[len(RESTORE_SOURCE_PREFIX):]
        chat = ((callback.get("message") or {}).get("chat") or {})
        chat_id = str(chat.get("id", user_id))
        channel = self._repository.get_user(user_id).find_channel(source_id)
        self._sessions.begin(user_id, source_id)
        await self._answer(callback_id)
        await self._reply(chat_id, replies.restore_ask_target(channel.title if channel else source_id))

    # Commands

    async def _cmd_start(self, incoming: Incoming, args: list[str]) -> None:
        await self._reply(incoming.chat_id, replies.start())

    async def _cmd_help(self, incoming: Incoming, args: list[str]) -> None:
        await self._reply(incoming.chat_id, replies.help_text())

    async def _cmd_addchannel(self, incoming: Incoming, args: list[str]) -> None:
        if not args:
            await self._reply(incoming.chat_id, replies.addchannel_usage())
            return

        await self._reply(incoming.chat_id, replies.checking_channel())
        channel_id = await self._resolve(incoming, args[0])
        if channel_id is None:
            return

        user = self._repository.get_user(incoming.user_id)
        existing = user.find_channel(channel_id)
        if existing:
            await self._reply(incoming.chat_id, replies.channel_already_added(existing.title, channel_id))
            return

        chat = await self._gateway.get_chat(channel_id)
        if not chat.ok or not isinstance(chat.result, dict):
            await self._reply(incoming.chat_id, replies.channel_unreachable())
            return

        channel = Channel(
            id=channel_id,
            title=chat.result.get("title") or "Unknown Channel",
            username=chat.result.get("username"),
            added_at=int(self._clock() * 1000),
        )
        user.channels.append(channel)
        self._repository.save_user(user)
        LOGGER.info("User %s registered channel %s", incoming.user_id, channel_id)
        await self._reply(incoming.chat_id, replies.channel_added(channel))

        self._runner.submit(
            self._discoverer.discover_history(channel_id, incoming.user_id, channel.title),
            name=f"discover:{channel_id}",
        )

    async def _cmd_removechannel(self, incoming: Incoming, args: list[str]) -> None:
        if not args:
            await self._reply(incoming.chat_id, replies.removechannel_usage())
            return
        channel_id = await self._resolve(incoming, args[0])
        if channel_id is None:
            return

        user = self._repository.get_user(incoming.user_id)
        removed = user.remove_channel(channel_id)
        if removed is None:
            await self._reply(incoming.chat_id, replies.channel_not_registered())
            return
        # Backups outlive the registration.
        self._repository.save_user(user)
        LOGGER.info("User %s removed channel %s", incoming.user_id, channel_id)
        await self._reply(incoming.chat_id, replies.channel_removed(removed))

    async def _cmd_channels(self, incoming: Incoming, args: list[str]) -> None:
        user = self._repository.get_user(incoming.user_id)
        if not user.channels:
            await self._reply(incoming.chat_id, replies.no_channels())
            return
        rows = [(channel, self._repository.count_entries(channel.id)) for channel in user.channels]
        await self._reply(incoming.chat_id, replies.channel_list(rows))

    async def _cmd_backup(self, incoming: Incoming, args: list[str]) -> None:
        user = self._repository.get_user(incoming.user_id)
        if not user.channels:
            await self._reply(incoming.chat_id, replies.no_channels())
            return
        rows = []
        for channel in user.channels:
            ids = self._repository.message_ids(channel.id)
            last_date = None
            if ids:
                last = self._repository.get_entry(channel.id, ids[-1])
                last_date = last.date if last else None
            rows.append((channel, len(ids), last_date))
        await self._reply(incoming.chat_id, replies.backup_summary(rows))

    async def _cmd_restore(self, incoming: Incoming, args: list[str]) -> None:
        if len(args) >= 2:
            source_id = await self._resolve(incoming, args[0])
            if source_id is None:
                return
            await self._restore_to_reference(incoming, source_id, args[1])
            return
        if args:
            await self._reply(incoming.chat_id, replies.restore_usage())
            return

        user = self._repository.get_user(incoming.user_id)
        if not user.channels:
            await self._reply(incoming.chat_id, replies.no_channels())
            return
        keyboard = {
            "inline_keyboard": [
                [{"text": channel.title, "callback_data": f"{RESTORE_SOURCE_PREFIX}{channel.id}"}]
                for channel in user.channels
            ]
        }
        await self._reply(incoming.chat_id, replies.restore_pick_source(), reply_markup=keyboard)

    async def _cmd_notify(self, incoming: Incoming, args: list[str]) -> None:
        choice = args[0].lower() if args else ""
        if choice in {"on", "off"}:
            self._repository.set_notifications(incoming.user_id, choice == "on")
        await self._reply(
            incoming.chat_id,
            replies.notify_status(self._repository.notifications_enabled(incoming.user_id)),
        )

    async def _cmd_manualbackup(self, incoming: Incoming, args: list[str]) -> None:
        if not args:
            await self._reply(incoming.chat_id, replies.manualbackup_usage())
            return
        channel_id = await self._resolve(incoming, args[0])
        if channel_id is None:
            return
        channel = self._repository.get_user(incoming.user_id).find_channel(channel_id)
        if channel is None:
            await self._reply(incoming.chat_id, replies.channel_not_registered())
            return
        self._repository.arm_manual_backup(incoming.user_id, channel_id)
        await self._reply(incoming.chat_id, replies.manual_backup_armed(channel.title))

    async def _cmd_stopbackup(self, incoming: Incoming, args: list[str]) -> None:
        self._repository.disarm_manual_backup(incoming.user_id)
        await self._reply(incoming.chat_id, replies.manual_backup_stopped())

    # Flows

    async def _capture_forward(self, incoming: Incoming) -> None:
        armed = self._repository.armed_manual_backup(incoming.user_id)
        origin = forwarded_origin(incoming.message)
        if not armed or origin is None:
            return
        channel_id, message_id = origin
        if channel_id != armed:
            await self._reply(incoming.chat_id, replies.manual_wrong_source())
            return
        result = await self._recorder.record_forwarded(channel_id, message_id, incoming.message)
        if result.status is RecordStatus.SAVED:
            await self._reply(incoming.chat_id, replies.manual_saved(message_id))
        elif result.status is RecordStatus.DUPLICATE:
            await self._reply(incoming.chat_id, replies.manual_duplicate(message_id))
        else:
            await self._reply(incoming.chat_id, replies.manual_oversized())

    async def _restore_to_reference(self, incoming: Incoming, source_id: str, target_ref: str) -> None:
        target_id = await self._resolve(incoming, target_ref)
        if target_id is None:
            return

        source_chat = await self._gateway.get_chat(source_id)
        target_chat = await self._gateway.get_chat(target_id)
        if not source_chat.ok or not target_chat.ok:
            await self._reply(incoming.chat_id, replies.restore_unreachable())
            return
        source_title = _chat_title(source_chat.result, source_id)
        target_title = _chat_title(target_chat.result, target_id)

        count = self._repository.count_entries(source_id)
        if count == 0:
            await self._reply(incoming.chat_id, replies.restore_empty(source_title, source_id))
            return

        self._runner.submit(
            self._run_restore(incoming.chat_id, source_id, source_title, target_id, target_title, count),
            name=f"restore:{source_id}->{target_id}",
        )

    async def _run_restore(
        self,
        chat_id: str,
        source_id: str,
        source_title: str,
        target_id: str,
        target_title: str,
        count: int,
    ) -> None:
        status = StatusMessage(self._gateway, chat_id)
        await status.start(replies.restore_starting(source_title, target_title, count))
        try:
            report = await self._restorer_factory().restore(
                source_id, target_id, MessageRestoreSink(status, target_title)
            )
        except Exception:
            LOGGER.exception("Restore %s -> %s failed", source_id, target_id)
            await self._reply(chat_id, replies.restore_failed())
            return
        await self._reply(chat_id, replies.restore_finished(target_title, target_id, report))

    # Helpers

    async def _resolve(self, incoming: Incoming, raw_value: str) -> Optional[str]:
        try:
            return await resolve_channel_ref(self._gateway, raw_value)
        except ChannelResolutionError as exc:
            LOGGER.info("Channel reference rejected: %s", exc)
            await self._reply(incoming.chat_id, replies.invalid_channel(raw_value))
            return None

    async def _reply(self, chat_id: str, text: str, reply_markup: Optional[dict[str, Any]] = None) -> None:
        try:
            result = await self._gateway.send_message(chat_id, text, reply_markup=reply_markup)
        except Exception:
            LOGGER.exception("Failed to reply to %s", chat_id)
            return
        if not result.ok:
            LOGGER.warning("Reply to %s rejected: %s", chat_id, result.description)

    async def _answer(self, callback_id: str) -> None:
        if not callback_id:
            return
        try:
            await self._gateway.answer_callback_query(callback_id)
        except Exception:
            LOGGER.exception("Failed to answer callback %s", callback_id)


def _chat_title(result: Any, fallback: str) -> str:
    if isinstance(result, dict) and result.get("title"):
        return str(result["title"])
    return fallback
