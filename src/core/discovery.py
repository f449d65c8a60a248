"""History discovery for newly registered channels.

The scan walks message ids downward from an estimated upper bound and probes
each one. Channel id ranges are sparse (deleted posts, service messages), so
a single miss means little; a long unbroken run of misses is taken as the
sign that the scan has passed the oldest real content.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from core import replies
from core.config import DiscoveryConfig
from core.models import DiscoveryReport
from core.ports import ChannelGateway
from core.probe import ProbeOutcome, probe_and_record
from core.progress import ProgressThrottle, StatusMessage
from core.repository import BackupRepository

LOGGER = logging.getLogger(__name__)


class HistoryDiscoverer:
    """Back-fill entries for messages a channel already contains."""

    def __init__(
        self,
        gateway: ChannelGateway,
        repository: BackupRepository,
        config: DiscoveryConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._config = config
        self._sleep = sleep
        self._clock = clock

    async def discover_history(
        self,
        channel_id: str,
        requesting_user: str,
        channel_title: Optional[str] = None,
    ) -> DiscoveryReport:
        """Scan a channel's history; never raises.

        Progress and the final report go to ``requesting_user`` as messages.
        """

        title = channel_title or channel_id
        status = StatusMessage(self._gateway, requesting_user)
        throttle = ProgressThrottle(self._config.progress_every, self._config.progress_interval, self._clock)
        saved = skipped = scanned = failures = 0
        message_id = self._config.upper_bound

        try:
            await status.start(replies.discovery_started(title))
            while message_id >= 0 and failures < self._config.failure_cutoff:
                scanned += 1
                # Id 0 is never a real message; it only closes the range.
                if message_id == 0:
                    outcome = ProbeOutcome.MISSING
                else:
                    outcome = await probe_and_record(
                        self._gateway, self._repository, channel_id, message_id, self._config.max_media_bytes
                    )

                if outcome is ProbeOutcome.MISSING:
                    failures += 1
                else:
                    failures = 0
                    if outcome is ProbeOutcome.SAVED:
                        saved += 1
                    else:
                        skipped += 1

                if throttle.due(saved):
                    await status.update(replies.discovery_progress(title, saved, skipped, scanned, message_id))
                message_id -= 1
                if message_id > 0:
                    await self._sleep(self._config.probe_delay)
        except Exception as exc:
            LOGGER.exception("History scan of %s failed at message %s", channel_id, message_id)
            report = DiscoveryReport(saved, skipped, scanned, error=str(exc) or type(exc).__name__)
            await self._report(requesting_user, replies.discovery_failed(title, report))
            return report

        report = DiscoveryReport(saved, skipped, scanned)
        LOGGER.info(
            "History scan of %s complete: saved=%s, skipped=%s, scanned=%s",
            channel_id,
            saved,
            skipped,
            scanned,
        )
        await self._report(requesting_user, replies.discovery_finished(title, report))
        return report

    async def _report(self, user_id: str, text: str) -> None:
        try:
            result = await self._gateway.send_message(user_id, text)
        except Exception:
            LOGGER.exception("Failed to send scan report to %s", user_id)
            return
        if not result.ok:
            LOGGER.warning("Scan report to %s rejected: %s", user_id, result.description)
