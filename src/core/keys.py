"""Helpers for the content store key scheme.

The layout is shared with existing deployments, so key formats must not
change:

- ``user:<userId>``                   JSON user record
- ``backup:<channelId>:<messageId>``  JSON backup entry
- ``notify:<userId>``                 ``"on"`` | ``"off"``
- ``restore_state:<userId>``          restore workflow state
- ``restore_temp:<userId>:<field>``   restore workflow scratch values
- ``manual_backup:<userId>``          channel armed for forward-to-save
"""

from __future__ import annotations

from typing import Optional, Tuple

USER_PREFIX = "user:"
BACKUP_PREFIX = "backup:"


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def user_id_from_key(key: str) -> Optional[str]:
    if not key.startswith(USER_PREFIX):
        return None
    return key[len(USER_PREFIX):] or None


def backup_prefix(channel_id: str) -> str:
    """Return the prefix that selects every backup of one channel.

    The trailing colon keeps ``-1001`` from matching ``-10012``.
    """

    return f"{BACKUP_PREFIX}{channel_id}:"


def backup_key(channel_id: str, message_id: int) -> str:
    return f"{backup_prefix(channel_id)}{int(message_id)}"


def parse_backup_key(key: str) -> Optional[Tuple[str, int]]:
    """Split a backup key into (channel_id, message_id)."""

    if not key.startswith(BACKUP_PREFIX):
        return None
    channel_id, sep, raw_message_id = key[len(BACKUP_PREFIX):].rpartition(":")
    if not sep or not channel_id:
        return None
    try:
        return channel_id, int(raw_message_id)
    except ValueError:
        return None


def notify_key(user_id: str) -> str:
    return f"notify:{user_id}"


def restore_state_key(user_id: str) -> str:
    return f"restore_state:{user_id}"


def restore_temp_key(user_id: str, field: str) -> str:
    return f"restore_temp:{user_id}:{field}"


def manual_backup_key(user_id: str) -> str:
    return f"manual_backup:{user_id}"
