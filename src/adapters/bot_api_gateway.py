"""Telegram Bot API gateway adapter.

Implements the core ChannelGateway port over the JSON Bot API. Every method
is a POST to ``https://api.telegram.org/bot<token>/<method>``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional

from core.models import ApiResult, ContentKind

LOGGER = logging.getLogger(__name__)

# Bot API method and payload field used to resend each content kind.
SEND_METHODS: dict[ContentKind, tuple[str, str]] = {
    ContentKind.PHOTO: ("sendPhoto", "photo"),
    ContentKind.VIDEO: ("sendVideo", "video"),
    ContentKind.DOCUMENT: ("sendDocument", "document"),
    ContentKind.AUDIO: ("sendAudio", "audio"),
    ContentKind.VOICE: ("sendVoice", "voice"),
    ContentKind.ANIMATION: ("sendAnimation", "animation"),
    ContentKind.STICKER: ("sendSticker", "sticker"),
    ContentKind.VIDEO_NOTE: ("sendVideoNote", "video_note"),
}

# Kinds whose send method rejects a caption.
_NO_CAPTION = {ContentKind.STICKER, ContentKind.VIDEO_NOTE}


class TelegramBotGateway:
    """Gateway adapter that talks to the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 30.0,
        base_url: str = "https://api.telegram.org",
    ) -> None:
        self._bot_token = bot_token
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"{self._base_url}/bot{self._bot_token}/{method}"

    def _call_sync(self, method: str, payload: dict[str, Any]) -> ApiResult:
        data = json.dumps(payload).encode("utf-8")
        request = urllib.request.Request(self._endpoint(method), data=data, method="POST")
        request.add_header("Content-Type", "application/json")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                body = response.read().decode("utf-8", errors="replace")
        except urllib.error.HTTPError as e:
            # Telegram answers API errors with a JSON body and a 4xx status.
            body = e.read().decode("utf-8", errors="replace")
            parsed = _parse_body(body)
            if parsed is None:
                return ApiResult.failure(f"HTTP {e.code}: {body[:200]}", e.code)
            return parsed
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            LOGGER.warning("Bot API %s transport error: %s", method, e)
            return ApiResult.failure(f"transport error: {e}")

        parsed = _parse_body(body)
        if parsed is None:
            return ApiResult.failure(f"invalid response: {body[:200]}")
        return parsed

    async def call(self, method: str, payload: dict[str, Any]) -> ApiResult:
        """Call a Bot API method without blocking the event loop."""

        result = await asyncio.to_thread(self._call_sync, method, payload)
        if not result.ok:
            LOGGER.debug("Bot API %s failed: %s", method, result.description)
        return result

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        parse_mode: Optional[str] = "HTML",
        reply_markup: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("sendMessage", payload)

    async def send_content(
        self,
        chat_id: str,
        kind: ContentKind,
        value: str,
        caption: Optional[str] = None,
    ) -> ApiResult:
        if kind is ContentKind.TEXT:
            # Restored text is sent verbatim, without markup parsing.
            return await self.send_message(chat_id, value, parse_mode=None)
        method, field = SEND_METHODS[kind]
        payload: dict[str, Any] = {"chat_id": chat_id, field: value}
        if caption and kind not in _NO_CAPTION:
            payload["caption"] = caption
        return await self.call(method, payload)

    async def forward_message(self, chat_id: str, from_chat_id: str, message_id: int) -> ApiResult:
        return await self.call(
            "forwardMessage",
            {
                "chat_id": chat_id,
                "from_chat_id": from_chat_id,
                "message_id": message_id,
                "disable_notification": True,
            },
        )

    async def copy_message(self, chat_id: str, from_chat_id: str, message_id: int) -> ApiResult:
        return await self.call(
            "copyMessage",
            {"chat_id": chat_id, "from_chat_id": from_chat_id, "message_id": message_id},
        )

    async def delete_message(self, chat_id: str, message_id: int) -> ApiResult:
        return await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def get_chat(self, chat_id: str) -> ApiResult:
        return await self.call("getChat", {"chat_id": chat_id})

    async def edit_message_text(
        self,
        chat_id: str,
        message_id: int,
        text: str,
        *,
        reply_markup: Optional[dict[str, Any]] = None,
    ) -> ApiResult:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("editMessageText", payload)

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> ApiResult:
        payload: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return await self.call("answerCallbackQuery", payload)

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 0) -> ApiResult:
        payload: dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        return await self.call("getUpdates", payload)

    async def set_webhook(self, url: str) -> ApiResult:
        return await self.call(
            "setWebhook",
            {"url": url, "allowed_updates": ["message", "channel_post", "callback_query"]},
        )


def _parse_body(body: str) -> Optional[ApiResult]:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return ApiResult(
        ok=bool(data.get("ok")),
        result=data.get("result"),
        description=data.get("description"),
        error_code=data.get("error_code"),
    )
