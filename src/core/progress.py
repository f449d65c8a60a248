"""Out-of-band progress reporting for long-running jobs.

Progress is shown by editing one status message in place rather than sending
a new message for every update.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core import replies
from core.models import RestoreProgress
from core.ports import ChannelGateway

LOGGER = logging.getLogger(__name__)


class ProgressThrottle:
    """Decide when an update is due: every N items or every T seconds."""

    def __init__(self, every: int, interval: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._every = max(1, every)
        self._interval = interval
        self._clock = clock
        self._last_count = 0
        self._last_time = clock()

    def due(self, count: int) -> bool:
        now = self._clock()
        if count - self._last_count >= self._every or now - self._last_time >= self._interval:
            self._last_count = count
            self._last_time = now
            return True
        return False


class StatusMessage:
    """A single chat message that is sent once and then edited."""

    def __init__(self, gateway: ChannelGateway, chat_id: str, message_id: Optional[int] = None) -> None:
        self._gateway = gateway
        self._chat_id = chat_id
        self._message_id = message_id
        self._last_text: Optional[str] = None

    @property
    def message_id(self) -> Optional[int]:
        return self._message_id

    async def start(self, text: str) -> None:
        try:
            sent = await self._gateway.send_message(self._chat_id, text)
        except Exception:
            LOGGER.exception("Failed to send status message to %s", self._chat_id)
            return
        if sent.ok:
            self._message_id = sent.message_id
            self._last_text = text

    async def update(self, text: str) -> None:
        """Edit the status message; updates before a successful start are dropped."""

        if self._message_id is None or text == self._last_text:
            return
        try:
            edited = await self._gateway.edit_message_text(self._chat_id, self._message_id, text)
        except Exception:
            LOGGER.exception("Failed to edit status message %s", self._message_id)
            return
        if edited.ok:
            self._last_text = text
        else:
            LOGGER.debug("Status edit rejected: %s", edited.description)


class MessageRestoreSink:
    """ProgressSink that renders restore progress into a status message."""

    def __init__(self, status: StatusMessage, target_title: str) -> None:
        self._status = status
        self._target_title = target_title

    async def publish(self, progress: RestoreProgress) -> None:
        await self._status.update(replies.restore_progress(self._target_title, progress))
