from __future__ import annotations

from typing import Any, Optional

from core.models import ApiResult, ContentKind


class FakeStore:
    """In-memory ContentStore that counts writes."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.puts = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def put(self, key: str, value: str) -> None:
        self.puts += 1
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def list_keys(self, prefix: str) -> list[str]:
        return sorted(key for key in self.data if key.startswith(prefix))


class FakeGateway:
    """Records every call and answers from configurable channel contents.

    ``messages`` maps (channel_id, message_id) to the payload a forward of
    that id would return. ``failing_values`` makes send_content return
    ok=False for those values; ``raising_values`` makes it raise.
    """

    def __init__(
        self,
        messages: Optional[dict[tuple[str, int], dict[str, Any]]] = None,
        chats: Optional[dict[str, dict[str, Any]]] = None,
        failing_values: Optional[set[str]] = None,
        raising_values: Optional[set[str]] = None,
    ) -> None:
        self.messages = messages or {}
        self.chats = chats or {}
        self.failing_values = failing_values or set()
        self.raising_values = raising_values or set()
        self.sent: list[tuple[str, str]] = []
        self.markups: list[Optional[dict[str, Any]]] = []
        self.content: list[tuple[str, ContentKind, str, Optional[str]]] = []
        self.forwards: list[tuple[str, str, int]] = []
        self.deleted: list[tuple[str, int]] = []
        self.edits: list[tuple[str, int, str]] = []
        self.answered: list[str] = []
        self._next_id = 100000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def send_message(self, chat_id, text, *, parse_mode="HTML", reply_markup=None) -> ApiResult:
        self.sent.append((chat_id, text))
        self.markups.append(reply_markup)
        return ApiResult(ok=True, result={"message_id": self._new_id()})

    async def send_content(self, chat_id, kind, value, caption=None) -> ApiResult:
        if value in self.raising_values:
            raise ConnectionError("socket closed")
        self.content.append((chat_id, kind, value, caption))
        if value in self.failing_values:
            return ApiResult.failure("Bad Request: wrong file identifier", 400)
        return ApiResult(ok=True, result={"message_id": self._new_id()})

    async def forward_message(self, chat_id, from_chat_id, message_id) -> ApiResult:
        self.forwards.append((chat_id, from_chat_id, message_id))
        payload = self.messages.get((from_chat_id, message_id))
        if payload is None:
            return ApiResult.failure("Bad Request: message to forward not found", 400)
        return ApiResult(ok=True, result={**payload, "message_id": self._new_id()})

    async def copy_message(self, chat_id, from_chat_id, message_id) -> ApiResult:
        return await self.forward_message(chat_id, from_chat_id, message_id)

    async def delete_message(self, chat_id, message_id) -> ApiResult:
        self.deleted.append((chat_id, message_id))
        return ApiResult(ok=True, result=True)

    async def get_chat(self, chat_id) -> ApiResult:
        chat = self.chats.get(str(chat_id))
        if chat is None:
            return ApiResult.failure("Bad Request: chat not found", 400)
        return ApiResult(ok=True, result=chat)

    async def edit_message_text(self, chat_id, message_id, text, *, reply_markup=None) -> ApiResult:
        self.edits.append((chat_id, message_id, text))
        return ApiResult(ok=True, result={"message_id": message_id})

    async def answer_callback_query(self, callback_query_id, text=None) -> ApiResult:
        self.answered.append(callback_query_id)
        return ApiResult(ok=True, result=True)

    def texts_to(self, chat_id: str) -> list[str]:
        return [text for target, text in self.sent if target == chat_id]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    def __init__(self) -> None:
        self.published = []

    async def publish(self, progress) -> None:
        self.published.append(progress)


async def no_sleep(_seconds: float) -> None:
    return None


def text_post(channel_id: str, message_id: int, text: str, date: int = 1_700_000_000) -> dict[str, Any]:
    return {
        "message_id": message_id,
        "date": date,
        "chat": {"id": int(channel_id), "type": "channel"},
        "text": text,
    }
