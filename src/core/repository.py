"""Typed access to the content store.

Every read goes back to the store; nothing is cached between calls because
each inbound event is handled as an independent unit of work.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from core import keys
from core.models import BackupEntry, UserRecord
from core.ports import ContentStore

LOGGER = logging.getLogger(__name__)


class BackupRepository:
    """Users, backup entries and per-user preferences over a ContentStore."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    # Users

    def get_user(self, user_id: str) -> UserRecord:
        """Return the user record, or a fresh empty one on first interaction."""

        raw = self._store.get(keys.user_key(user_id))
        if not raw:
            return UserRecord(user_id=user_id)
        return UserRecord.from_dict(user_id, json.loads(raw))

    def save_user(self, user: UserRecord) -> None:
        self._store.put(keys.user_key(user.user_id), json.dumps(user.to_dict(), ensure_ascii=False))

    def ensure_user(self, user_id: str) -> UserRecord:
        """Create the user record on first interaction."""

        if self._store.get(keys.user_key(user_id)) is None:
            user = UserRecord(user_id=user_id)
            self.save_user(user)
            return user
        return self.get_user(user_id)

    def list_user_ids(self) -> list[str]:
        user_ids = []
        for key in self._store.list_keys(keys.USER_PREFIX):
            user_id = keys.user_id_from_key(key)
            if user_id:
                user_ids.append(user_id)
        return user_ids

    def iter_users(self) -> Iterable[UserRecord]:
        for user_id in self.list_user_ids():
            yield self.get_user(user_id)

    def owners_of(self, channel_id: str) -> list[UserRecord]:
        """Return every user that has the channel registered."""

        return [user for user in self.iter_users() if user.find_channel(channel_id)]

    # Backup entries

    def has_entry(self, channel_id: str, message_id: int) -> bool:
        return self._store.get(keys.backup_key(channel_id, message_id)) is not None

    def get_entry(self, channel_id: str, message_id: int) -> Optional[BackupEntry]:
        raw = self._store.get(keys.backup_key(channel_id, message_id))
        if raw is None:
            return None
        return BackupEntry.from_dict(json.loads(raw))

    def save_entry(self, channel_id: str, entry: BackupEntry) -> bool:
        """Write the entry unless one already exists for its message id.

        Returns False when an entry was already present. The check and the
        write are not atomic; two racing writers store identical content.
        """

        key = keys.backup_key(channel_id, entry.message_id)
        if self._store.get(key) is not None:
            return False
        self._store.put(key, json.dumps(entry.to_dict(), ensure_ascii=False))
        return True

    def backed_up_channel_ids(self) -> list[str]:
        """Return every channel id with at least one entry, registered or not."""

        channel_ids = set()
        for key in self._store.list_keys(keys.BACKUP_PREFIX):
            parsed = keys.parse_backup_key(key)
            if parsed:
                channel_ids.add(parsed[0])
        return sorted(channel_ids)

    def message_ids(self, channel_id: str) -> list[int]:
        """Return backed-up message ids for a channel in ascending order."""

        ids = []
        for key in self._store.list_keys(keys.backup_prefix(channel_id)):
            parsed = keys.parse_backup_key(key)
            if parsed and parsed[0] == channel_id:
                ids.append(parsed[1])
        return sorted(ids)

    def count_entries(self, channel_id: str) -> int:
        return len(self.message_ids(channel_id))

    def latest_message_id(self, channel_id: str) -> int:
        ids = self.message_ids(channel_id)
        return ids[-1] if ids else 0

    def list_entries(self, channel_id: str) -> list[BackupEntry]:
        """Load every entry of a channel sorted ascending by message id."""

        entries = []
        for message_id in self.message_ids(channel_id):
            raw = self._store.get(keys.backup_key(channel_id, message_id))
            if raw is None:
                continue
            try:
                entries.append(BackupEntry.from_dict(json.loads(raw)))
            except (ValueError, KeyError, TypeError):
                LOGGER.warning("Skipping unreadable backup %s:%s", channel_id, message_id)
        entries.sort(key=lambda entry: entry.message_id)
        return entries

    # Preferences

    def notifications_enabled(self, user_id: str) -> bool:
        return self._store.get(keys.notify_key(user_id)) != "off"

    def set_notifications(self, user_id: str, enabled: bool) -> None:
        self._store.put(keys.notify_key(user_id), "on" if enabled else "off")

    # Forward-to-save capture

    def arm_manual_backup(self, user_id: str, channel_id: str) -> None:
        self._store.put(keys.manual_backup_key(user_id), channel_id)

    def armed_manual_backup(self, user_id: str) -> Optional[str]:
        return self._store.get(keys.manual_backup_key(user_id)) or None

    def disarm_manual_backup(self, user_id: str) -> None:
        self._store.delete(keys.manual_backup_key(user_id))
