"""Per-user restore workflow slot for the button-driven restore flow.

A session is opened when the user picks a source channel from the inline
keyboard and must be cleared on every branch that consumes it. Sessions also
expire so an abandoned flow cannot capture an unrelated message later.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from core import keys
from core.config import SessionConfig
from core.ports import ContentStore

WAITING_TARGET = "waiting_target"


@dataclass(frozen=True)
class RestoreSession:
    user_id: str
    source_channel_id: str
    expires_at: float


class RestoreSessions:
    """Store-backed restore sessions keyed by user id."""

    def __init__(
        self,
        store: ContentStore,
        config: SessionConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._config = config
        self._clock = clock

    def begin(self, user_id: str, source_channel_id: str) -> RestoreSession:
        expires_at = self._clock() + self._config.ttl_seconds
        self._store.put(keys.restore_state_key(user_id), WAITING_TARGET)
        self._store.put(keys.restore_temp_key(user_id, "source"), source_channel_id)
        self._store.put(keys.restore_temp_key(user_id, "expires_at"), str(expires_at))
        return RestoreSession(user_id, source_channel_id, expires_at)

    def get(self, user_id: str) -> Optional[RestoreSession]:
        """Return the open session, clearing it first if it has expired."""

        if self._store.get(keys.restore_state_key(user_id)) != WAITING_TARGET:
            return None
        source = self._store.get(keys.restore_temp_key(user_id, "source"))
        raw_expiry = self._store.get(keys.restore_temp_key(user_id, "expires_at"))
        try:
            expires_at = float(raw_expiry) if raw_expiry else 0.0
        except ValueError:
            expires_at = 0.0
        if not source or expires_at <= self._clock():
            self.clear(user_id)
            return None
        return RestoreSession(user_id, source, expires_at)

    def clear(self, user_id: str) -> None:
        self._store.delete(keys.restore_state_key(user_id))
        self._store.delete(keys.restore_temp_key(user_id, "source"))
        self._store.delete(keys.restore_temp_key(user_id, "expires_at"))
