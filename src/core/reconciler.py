"""Periodic reconciler: catch posts the per-post hook missed.

For each registered channel, a fixed window of ids just above the newest
backup is probed. The only state carried between runs is what the store
already holds. Running this against a channel whose history scan is still in
progress can race on probe copies; that case is not guarded against.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from core import replies
from core.config import ReconcileConfig
from core.models import Channel, ReconcileReport
from core.ports import ChannelGateway
from core.probe import ProbeOutcome, probe_and_record
from core.repository import BackupRepository

LOGGER = logging.getLogger(__name__)


class PeriodicReconciler:
    def __init__(
        self,
        gateway: ChannelGateway,
        repository: BackupRepository,
        config: ReconcileConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._config = config
        self._sleep = sleep

    async def reconcile_all(self) -> ReconcileReport:
        """Sweep every registered channel once; never raises."""

        checked = new_total = failed = 0
        try:
            owners = self._collect_owners()
        except Exception:
            LOGGER.exception("Reconcile could not enumerate users")
            return ReconcileReport(0, 0, 0)

        for index, (channel_id, (channel, user_ids)) in enumerate(owners.items()):
            if index:
                await self._sleep(self._config.channel_delay)
            checked += 1
            try:
                found = await self.reconcile_channel(channel_id)
            except Exception:
                failed += 1
                LOGGER.exception("Reconcile of %s failed", channel_id)
                continue
            new_total += found
            if found:
                await self._notify(user_ids, channel, found)

        LOGGER.info("Reconcile complete: channels=%s, new=%s, failed=%s", checked, new_total, failed)
        return ReconcileReport(checked, new_total, failed)

    async def reconcile_channel(self, channel_id: str) -> int:
        """Probe the window above the newest backup and return how many were saved."""

        latest = self._repository.latest_message_id(channel_id)
        found = 0
        for message_id in range(latest + 1, latest + 1 + self._config.window):
            if self._repository.has_entry(channel_id, message_id):
                continue
            outcome = await probe_and_record(
                self._gateway,
                self._repository,
                channel_id,
                message_id,
                self._config.max_media_bytes,
                periodic_backup=True,
            )
            if outcome is ProbeOutcome.SAVED:
                found += 1
            await self._sleep(self._config.probe_delay)
        if found:
            LOGGER.info("Reconcile found %s new messages in %s", found, channel_id)
        return found

    def _collect_owners(self) -> dict[str, tuple[Channel, list[str]]]:
        # A channel shared by several users is probed once and every owner is told.
        owners: dict[str, tuple[Channel, list[str]]] = {}
        for user in self._repository.iter_users():
            for channel in user.channels:
                owners.setdefault(channel.id, (channel, []))[1].append(user.user_id)
        return owners

    async def _notify(self, user_ids: list[str], channel: Channel, count: int) -> None:
        for user_id in user_ids:
            if not self._repository.notifications_enabled(user_id):
                continue
            try:
                result = await self._gateway.send_message(user_id, replies.reconcile_found(channel.title, count))
            except Exception:
                LOGGER.exception("Failed to notify %s about reconcile of %s", user_id, channel.id)
                continue
            if not result.ok:
                LOGGER.warning("Reconcile notice to %s rejected: %s", user_id, result.description)
