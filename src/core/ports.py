"""Ports (interfaces) used by the core engine.

Ports define the minimal contracts for storage and Bot API adapters so that
the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from core.models import ApiResult, ContentKind, RestoreProgress


class ContentStore(Protocol):
    """Key-value store with prefix listing. Last write wins."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def list_keys(self, prefix: str) -> list[str]:
        ...


class ChannelGateway(Protocol):
    """Remote chat platform operations. Failures come back as ``ok=False``."""

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: Optional[str] = "HTML",
        reply_markup: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        ...

    async def send_content(
        self,
        chat_id: str,
        kind: ContentKind,
        value: str,
        caption: Optional[str] = None,
    ) -> ApiResult:
        ...

    async def forward_message(self, chat_id: str, from_chat_id: str, message_id: int) -> ApiResult:
        ...

    async def copy_message(self, chat_id: str, from_chat_id: str, message_id: int) -> ApiResult:
        ...

    async def delete_message(self, chat_id: str, message_id: int) -> ApiResult:
        ...

    async def get_chat(self, chat_id: str) -> ApiResult:
        ...

    async def edit_message_text(
        self,
        chat_id: str,
        message_id: int,
        text: str,
        *,
        reply_markup: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        ...

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> ApiResult:
        ...


class ProgressSink(Protocol):
    """Receives restore progress; typically edits one status message in place."""

    async def publish(self, progress: RestoreProgress) -> None:
        ...
