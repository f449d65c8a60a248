"""Mapping from Bot API message payloads to backup entries.

Bot API messages are plain dicts here so the core stays free of any client
library types.
"""

from __future__ import annotations

import time
from typing import Any, Iterator, Optional

from core.models import RECORD_PRIORITY, BackupEntry, Content, ContentKind

MEDIA_KINDS = tuple(kind for kind in RECORD_PRIORITY if kind is not ContentKind.TEXT)


def _file_id(value: Any) -> Optional[str]:
    # Photos arrive as a list of renditions ordered smallest to largest.
    if isinstance(value, list):
        value = value[-1] if value else None
    if isinstance(value, dict):
        file_id = value.get("file_id")
        return str(file_id) if file_id else None
    return None


def media_sizes(message: dict[str, Any]) -> Iterator[int]:
    """Yield every known file size across the attachments of a message."""

    for kind in MEDIA_KINDS:
        value = message.get(kind.value)
        items = value if isinstance(value, list) else [value]
        for item in items:
            if isinstance(item, dict) and item.get("file_size"):
                yield int(item["file_size"])


def exceeds_size_limit(message: dict[str, Any], max_bytes: int) -> bool:
    return any(size > max_bytes for size in media_sizes(message))


def extract_content(message: dict[str, Any]) -> Optional[Content]:
    """Pick the highest-priority populated content field of a message."""

    for kind in RECORD_PRIORITY:
        if kind is ContentKind.TEXT:
            text = message.get("text")
            if text:
                return Content(kind, str(text))
            continue
        file_id = _file_id(message.get(kind.value))
        if file_id:
            return Content(kind, file_id)
    return None


def origin_date(message: dict[str, Any]) -> int:
    """Return the original post time, looking through forward metadata."""

    origin = message.get("forward_origin")
    if isinstance(origin, dict) and origin.get("date"):
        return int(origin["date"])
    if message.get("forward_date"):
        return int(message["forward_date"])
    if message.get("date"):
        return int(message["date"])
    return int(time.time())


def entry_from_message(
    message: dict[str, Any],
    message_id: Optional[int] = None,
    **tags: bool,
) -> BackupEntry:
    """Build a backup entry from a message payload.

    ``message_id`` overrides the payload id, which is needed for forwarded
    copies whose own id differs from the original's.
    """

    return BackupEntry(
        message_id=int(message_id if message_id is not None else message["message_id"]),
        date=origin_date(message),
        content=extract_content(message),
        caption=message.get("caption"),
        **tags,
    )


def forwarded_origin(message: dict[str, Any]) -> Optional[tuple[str, int]]:
    """Return (channel_id, message_id) of the channel post a message was forwarded from."""

    origin = message.get("forward_origin")
    if isinstance(origin, dict) and origin.get("type") == "channel":
        chat = origin.get("chat") or {}
        if chat.get("id") is not None and origin.get("message_id") is not None:
            return str(chat["id"]), int(origin["message_id"])
    chat = message.get("forward_from_chat")
    if isinstance(chat, dict) and chat.get("id") is not None and message.get("forward_from_message_id") is not None:
        return str(chat["id"]), int(message["forward_from_message_id"])
    return None
