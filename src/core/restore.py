"""Restore orchestrator: replay a channel's backups into another channel.

Entries are replayed strictly in ascending message-id order, one send at a
time, with a fixed delay between sends. A failed send is counted and the
batch moves on; the final report always carries both counts.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Optional

from core.config import RestoreConfig
from core.models import RESTORE_PRIORITY, BackupEntry, Content, RestoreProgress, RestoreReport
from core.ports import ChannelGateway, ProgressSink
from core.progress import ProgressThrottle
from core.repository import BackupRepository

LOGGER = logging.getLogger(__name__)


class RestoreState(str, Enum):
    IDLE = "idle"
    SCANNING_SOURCE = "scanning-source"
    SENDING = "sending"
    COMPLETED = "completed"


def sendable_content(entry: BackupEntry) -> Optional[Content]:
    """Return the content to resend, or None when no supported kind is present."""

    if entry.content is not None and entry.content.kind in RESTORE_PRIORITY:
        return entry.content
    return None


class RestoreOrchestrator:
    """Runs one full, non-resumable pass over a source channel's backups."""

    def __init__(
        self,
        gateway: ChannelGateway,
        repository: BackupRepository,
        config: RestoreConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._config = config
        self._sleep = sleep
        self._clock = clock
        self.state = RestoreState.IDLE

    async def restore(
        self,
        source_channel_id: str,
        target_channel_id: str,
        progress_sink: ProgressSink,
    ) -> RestoreReport:
        self.state = RestoreState.SCANNING_SOURCE
        entries = self._repository.list_entries(source_channel_id)
        total = len(entries)
        LOGGER.info("Restoring %s entries from %s to %s", total, source_channel_id, target_channel_id)

        self.state = RestoreState.SENDING
        throttle = ProgressThrottle(self._config.progress_every, self._config.progress_interval, self._clock)
        restored = failed = skipped = 0
        for index, entry in enumerate(entries, start=1):
            content = sendable_content(entry)
            if content is None:
                skipped += 1
            else:
                if await self._send(target_channel_id, entry, content):
                    restored += 1
                else:
                    failed += 1
                if index < total:
                    await self._sleep(self._config.send_delay)

            if throttle.due(index):
                await self._publish(progress_sink, RestoreProgress(total, index, restored, failed))

        self.state = RestoreState.COMPLETED
        await self._publish(progress_sink, RestoreProgress(total, total, restored, failed, final=True))
        LOGGER.info(
            "Restore %s -> %s complete: restored=%s, failed=%s, skipped=%s",
            source_channel_id,
            target_channel_id,
            restored,
            failed,
            skipped,
        )
        return RestoreReport(restored, failed, skipped, total)

    async def _send(self, target_channel_id: str, entry: BackupEntry, content: Content) -> bool:
        try:
            result = await self._gateway.send_content(target_channel_id, content.kind, content.value, entry.caption)
        except Exception:
            LOGGER.exception("Restoring message %s raised", entry.message_id)
            return False
        if not result.ok:
            LOGGER.warning("Restoring message %s failed: %s", entry.message_id, result.description)
            return False
        return True

    async def _publish(self, sink: ProgressSink, progress: RestoreProgress) -> None:
        try:
            await sink.publish(progress)
        except Exception:
            LOGGER.exception("Progress update failed")
