"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types. Records serialize to the flat JSON
shape used in the content store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from core.errors import GatewayError


class ContentKind(str, Enum):
    """Kinds of content a backup entry can carry."""

    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    VOICE = "voice"
    ANIMATION = "animation"
    STICKER = "sticker"
    VIDEO_NOTE = "video_note"


# Which field the recorder keeps when a message carries several.
RECORD_PRIORITY = (
    ContentKind.TEXT,
    ContentKind.PHOTO,
    ContentKind.VIDEO,
    ContentKind.DOCUMENT,
    ContentKind.AUDIO,
    ContentKind.VOICE,
    ContentKind.ANIMATION,
    ContentKind.STICKER,
    ContentKind.VIDEO_NOTE,
)

# Which kinds the restorer knows how to resend, highest priority first.
RESTORE_PRIORITY = (
    ContentKind.TEXT,
    ContentKind.PHOTO,
    ContentKind.VIDEO,
    ContentKind.DOCUMENT,
    ContentKind.AUDIO,
    ContentKind.ANIMATION,
    ContentKind.STICKER,
)

PROVENANCE_TAGS = ("auto_backup", "manual_backup", "periodic_backup", "original_exists")


def _flag(value: Any) -> bool:
    # Older records stored tags as strings.
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1"}
    return value is True


@dataclass(frozen=True)
class Content:
    """One piece of message content: text body or an opaque file handle."""

    kind: ContentKind
    value: str


@dataclass(frozen=True)
class BackupEntry:
    """Durable copy of a single channel message."""

    message_id: int
    date: int
    content: Optional[Content] = None
    caption: Optional[str] = None
    auto_backup: bool = False
    manual_backup: bool = False
    periodic_backup: bool = False
    original_exists: bool = False

    @property
    def text(self) -> Optional[str]:
        if self.content and self.content.kind is ContentKind.TEXT:
            return self.content.value
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "message_id": self.message_id,
            "date": self.date,
            "caption": self.caption,
        }
        for kind in RECORD_PRIORITY:
            data[kind.value] = None
        if self.content is not None:
            data[self.content.kind.value] = self.content.value
        for tag in PROVENANCE_TAGS:
            if getattr(self, tag):
                data[tag] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BackupEntry":
        content = None
        for kind in RECORD_PRIORITY:
            value = data.get(kind.value)
            if value:
                content = Content(kind, str(value))
                break
        return cls(
            message_id=int(data["message_id"]),
            date=int(data.get("date") or 0),
            content=content,
            caption=data.get("caption"),
            **{tag: _flag(data.get(tag)) for tag in PROVENANCE_TAGS},
        )


@dataclass(frozen=True)
class Channel:
    """A channel registered by a user. Identity is the chat id."""

    id: str
    title: str
    username: Optional[str] = None
    added_at: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "added_at": self.added_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Channel":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "Unknown Channel",
            username=data.get("username"),
            added_at=int(data.get("added_at") or 0),
        )


@dataclass
class UserRecord:
    """A bot user and the channels they registered, in registration order."""

    user_id: str
    channels: list[Channel] = field(default_factory=list)
    # Unused, kept so older records round-trip unchanged.
    backups: dict[str, Any] = field(default_factory=dict)

    def find_channel(self, channel_id: str) -> Optional[Channel]:
        for channel in self.channels:
            if channel.id == channel_id:
                return channel
        return None

    def remove_channel(self, channel_id: str) -> Optional[Channel]:
        for index, channel in enumerate(self.channels):
            if channel.id == channel_id:
                return self.channels.pop(index)
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "channels": [channel.to_dict() for channel in self.channels],
            "backups": self.backups,
        }

    @classmethod
    def from_dict(cls, user_id: str, data: dict[str, Any]) -> "UserRecord":
        return cls(
            user_id=user_id,
            channels=[Channel.from_dict(item) for item in data.get("channels", [])],
            backups=dict(data.get("backups") or {}),
        )


@dataclass(frozen=True)
class ApiResult:
    """Outcome of one Bot API call. ``ok=False`` is a normal, recoverable value."""

    ok: bool
    result: Any = None
    description: Optional[str] = None
    error_code: Optional[int] = None

    @property
    def message_id(self) -> Optional[int]:
        if isinstance(self.result, dict) and "message_id" in self.result:
            return int(self.result["message_id"])
        return None

    @classmethod
    def failure(cls, description: str, error_code: Optional[int] = None) -> "ApiResult":
        return cls(ok=False, description=description, error_code=error_code)

    def require(self, method: str) -> Any:
        """Return the result payload, raising GatewayError when the call failed."""

        if not self.ok:
            raise GatewayError(method, self.description or "unknown error", self.error_code)
        return self.result


class RecordStatus(str, Enum):
    SAVED = "saved"
    DUPLICATE = "duplicate"
    OVERSIZED = "oversized"


@dataclass(frozen=True)
class RecordResult:
    """Outcome of recording one channel post."""

    status: RecordStatus
    channel_id: str
    message_id: int

    @property
    def saved(self) -> bool:
        return self.status is RecordStatus.SAVED


@dataclass(frozen=True)
class DiscoveryReport:
    saved_count: int
    skipped_count: int
    scanned_count: int
    error: Optional[str] = None


@dataclass(frozen=True)
class RestoreReport:
    restored_count: int
    failed_count: int
    skipped_count: int = 0
    total: int = 0


@dataclass(frozen=True)
class ReconcileReport:
    channels_checked: int
    new_entries: int
    failed_channels: int


@dataclass(frozen=True)
class RestoreProgress:
    """Snapshot of a running restore, handed to the progress sink."""

    total: int
    processed: int
    restored: int
    failed: int
    final: bool = False

    @property
    def percent(self) -> int:
        if self.final or self.total <= 0:
            return 100
        return min(100, int(self.processed * 100 / self.total))
