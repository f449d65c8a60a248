"""Backup recorder: one canonical entry per (channel, message)."""

from __future__ import annotations

import logging
from typing import Any

from core import replies
from core.config import RecorderConfig
from core.content import entry_from_message, exceeds_size_limit
from core.models import RecordResult, RecordStatus
from core.ports import ChannelGateway
from core.repository import BackupRepository

LOGGER = logging.getLogger(__name__)


class BackupRecorder:
    """Records channel posts as they arrive and fans out owner notifications."""

    def __init__(
        self,
        gateway: ChannelGateway,
        repository: BackupRepository,
        config: RecorderConfig,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._config = config

    async def record_channel_post(self, channel_id: str, message_id: int, message: dict[str, Any]) -> RecordResult:
        """Persist a channel post unless it is oversized or already recorded."""

        # Oversized media is a deliberate skip, not a failure.
        if exceeds_size_limit(message, self._config.max_media_bytes):
            LOGGER.info("Skipping oversized post %s in %s", message_id, channel_id)
            return RecordResult(RecordStatus.OVERSIZED, channel_id, message_id)

        entry = entry_from_message(message, message_id=message_id, auto_backup=True)
        if not self._repository.save_entry(channel_id, entry):
            LOGGER.debug("Post %s in %s already backed up", message_id, channel_id)
            return RecordResult(RecordStatus.DUPLICATE, channel_id, message_id)

        LOGGER.info("Backed up post %s in %s", message_id, channel_id)
        if self._config.notify_owners:
            await self._notify_owners(channel_id, message_id)
        return RecordResult(RecordStatus.SAVED, channel_id, message_id)

    async def record_forwarded(self, channel_id: str, message_id: int, message: dict[str, Any]) -> RecordResult:
        """Persist a message the operator forwarded to the bot from a channel."""

        if exceeds_size_limit(message, self._config.max_media_bytes):
            return RecordResult(RecordStatus.OVERSIZED, channel_id, message_id)
        entry = entry_from_message(message, message_id=message_id, manual_backup=True)
        if not self._repository.save_entry(channel_id, entry):
            return RecordResult(RecordStatus.DUPLICATE, channel_id, message_id)
        LOGGER.info("Manually backed up %s in %s", message_id, channel_id)
        return RecordResult(RecordStatus.SAVED, channel_id, message_id)

    async def _notify_owners(self, channel_id: str, message_id: int) -> None:
        # Notification problems must never undo or fail the recorded backup.
        try:
            owners = self._repository.owners_of(channel_id)
        except Exception:
            LOGGER.exception("Failed to look up owners of %s", channel_id)
            return
        for owner in owners:
            if not self._repository.notifications_enabled(owner.user_id):
                continue
            channel = owner.find_channel(channel_id)
            title = channel.title if channel else channel_id
            try:
                result = await self._gateway.send_message(
                    owner.user_id, replies.owner_post_saved(title, message_id)
                )
            except Exception:
                LOGGER.exception("Failed to notify %s about %s", owner.user_id, channel_id)
                continue
            if not result.ok:
                LOGGER.warning("Notify %s rejected: %s", owner.user_id, result.description)
