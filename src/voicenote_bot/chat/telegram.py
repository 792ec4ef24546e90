from __future__ import annotations

"""Telegram Bot API client and update adapter."""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union

import httpx

from ..errors import ChatTransportError
from ..events import (
    CommandEvent,
    ConversationId,
    InboundEvent,
    LanguageSelectionEvent,
    MediaEvent,
    OtherEvent,
)
from ..media.types import MediaKind
from .base import ButtonRows

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096
ALLOWED_UPDATES = ["message", "callback_query"]


def _extract_command(message: Mapping[str, Any]) -> Optional[str]:
    text = message.get("text")
    if not isinstance(text, str) or not text.startswith("/"):
        return None
    token = text.split(maxsplit=1)[0]
    # "/help@SomeBot" in group chats
    command = token.split("@", 1)[0].lower()
    return command if len(command) > 1 else None


def _chat_id(container: Mapping[str, Any]) -> Optional[int]:
    chat = container.get("chat")
    if not isinstance(chat, dict):
        return None
    chat_id = chat.get("id")
    return chat_id if isinstance(chat_id, int) else None


def adapt_update(update: Mapping[str, Any]) -> InboundEvent:
    """Map a raw Bot API update onto the internal event union."""

    update_id = update.get("update_id")
    message = update.get("message")
    if isinstance(message, dict):
        chat_id = _chat_id(message)
        message_id = message.get("message_id")
        if chat_id is not None:
            command = _extract_command(message)
            if command:
                return CommandEvent(conversation=chat_id, command_name=command)
            for field, kind in (("voice", MediaKind.AUDIO), ("video_note", MediaKind.VIDEO)):
                attachment = message.get(field)
                if isinstance(attachment, dict) and attachment.get("file_id") and isinstance(message_id, int):
                    return MediaEvent(
                        conversation=chat_id,
                        message_id=message_id,
                        kind=kind,
                        file_reference=str(attachment["file_id"]),
                    )

    callback = update.get("callback_query")
    if isinstance(callback, dict):
        data = callback.get("data")
        origin = callback.get("message")
        chat_id = _chat_id(origin) if isinstance(origin, dict) else None
        if isinstance(data, str) and data and chat_id is not None and callback.get("id"):
            return LanguageSelectionEvent(
                conversation=chat_id,
                callback_id=str(callback["id"]),
                language_code=data,
            )

    return OtherEvent(update_id=update_id if isinstance(update_id, int) else None)


def split_text(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    if len(text) <= limit:
        return [text]
    return [text[i : i + limit] for i in range(0, len(text), limit)]


class TelegramBotClient:
    """Long-polling Bot API client implementing :class:`ChatClient`."""

    def __init__(
        self,
        token: str,
        *,
        api_url: str = "https://api.telegram.org",
        poll_timeout: int = 30,
        retry_delay: float = 1.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        root = api_url.rstrip("/")
        self._method_base = f"{root}/bot{token}"
        self._file_base = f"{root}/file/bot{token}"
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._offset: Optional[int] = None
        if client is None:
            # reads must outlive the long-poll window
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(poll_timeout + 15.0, connect=5.0))
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._client.post(f"{self._method_base}/{method}", json=payload or {})
        except httpx.HTTPError as exc:
            raise ChatTransportError(f"{method} request failed: {exc.__class__.__name__}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise ChatTransportError(f"{method} returned a non-JSON body (status {response.status_code})") from exc

        if not response.is_success or not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise ChatTransportError(f"{method} failed with status {response.status_code}: {description}")
        return data.get("result")

    async def get_updates(self) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"timeout": self._poll_timeout, "allowed_updates": ALLOWED_UPDATES}
        if self._offset is not None:
            payload["offset"] = self._offset
        result = await self._call("getUpdates", payload)
        updates = [item for item in (result or []) if isinstance(item, dict)]
        ids = [item["update_id"] for item in updates if isinstance(item.get("update_id"), int)]
        if ids:
            self._offset = max(ids) + 1
        return updates

    async def events(self) -> AsyncIterator[Union[InboundEvent, Exception]]:
        while True:
            try:
                updates = await self.get_updates()
            except ChatTransportError as exc:
                yield exc
                await asyncio.sleep(self._retry_delay)
                continue
            for update in updates:
                yield adapt_update(update)

    async def send_message(
        self,
        conversation: ConversationId,
        text: str,
        *,
        reply_to: Optional[int] = None,
        buttons: Optional[ButtonRows] = None,
    ) -> None:
        chunks = split_text(text)
        for index, chunk in enumerate(chunks):
            payload: Dict[str, Any] = {"chat_id": conversation, "text": chunk}
            if reply_to is not None:
                payload["reply_parameters"] = {"message_id": reply_to, "allow_sending_without_reply": True}
            # keyboard goes under the final part only
            if buttons and index == len(chunks) - 1:
                payload["reply_markup"] = {
                    "inline_keyboard": [
                        [{"text": button.label, "callback_data": button.callback_data} for button in row]
                        for row in buttons
                    ]
                }
            await self._call("sendMessage", payload)

    async def send_typing(self, conversation: ConversationId) -> None:
        await self._call("sendChatAction", {"chat_id": conversation, "action": "typing"})

    async def answer_callback(self, callback_id: str, text: str) -> None:
        await self._call("answerCallbackQuery", {"callback_query_id": callback_id, "text": text})

    async def download_media(self, file_reference: str) -> bytes:
        result = await self._call("getFile", {"file_id": file_reference})
        file_path = result.get("file_path") if isinstance(result, dict) else None
        if not file_path:
            raise ChatTransportError(f"getFile returned no file_path for {file_reference}")
        try:
            response = await self._client.get(f"{self._file_base}/{file_path}")
        except httpx.HTTPError as exc:
            raise ChatTransportError(f"file download failed: {exc.__class__.__name__}") from exc
        # status only: the URL embeds the bot token
        if not response.is_success:
            raise ChatTransportError(f"file download failed with status {response.status_code}")
        return response.content


__all__ = ["TelegramBotClient", "adapt_update", "split_text", "MAX_MESSAGE_LENGTH"]
