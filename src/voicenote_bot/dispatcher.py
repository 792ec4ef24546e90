from __future__ import annotations

"""Routes inbound chat events to command, media and callback handlers."""

import asyncio
import logging
from typing import AsyncIterable, Awaitable, Callable, Dict, Optional, Sequence, Set, Union

from .chat.base import ChatClient, InlineButton, chunk_buttons
from .errors import (
    ChatTransportError,
    RecognitionApplicationError,
    RecognitionTransportError,
    TranscodeError,
)
from .events import (
    CommandEvent,
    ConversationId,
    InboundEvent,
    LanguageSelectionEvent,
    MediaEvent,
)
from .media.transcoder import MediaTranscoder
from .media.types import MediaPayload
from .preferences import PreferenceStore
from .recognition.client import RecognitionClient
from .recognition.languages import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, Language

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Hello! I convert voice messages and video notes to text.\n"
    "Forward a message to me or add me to a group chat and I will reply with the transcript.\n"
    "Use /set_lang to pick the recognition language for this chat.\n\n"
    "Привет! Я превращаю голосовые сообщения и видеосообщения в текст. "
    "Язык распознавания можно выбрать командой /set_lang."
)
FAILURE_TEXT = "Something went wrong. Please try again later."
NO_SPEECH_TEXT = "Could not recognize any speech."
LANGUAGE_PROMPT = "Choose recognition language:"
LANGUAGE_SAVED = "Language saved."
LANGUAGE_REJECTED = "Unknown language."


class EventDispatcher:
    """Runs every inbound event as its own task.

    A failing event is logged and answered with at most one reply; it never
    stops the subscription loop or touches other in-flight events.
    """

    def __init__(
        self,
        *,
        chat: ChatClient,
        transcoder: MediaTranscoder,
        recognizer: RecognitionClient,
        preferences: PreferenceStore,
        default_language: str = DEFAULT_LANGUAGE,
        languages: Sequence[Language] = SUPPORTED_LANGUAGES,
    ) -> None:
        self._chat = chat
        self._transcoder = transcoder
        self._recognizer = recognizer
        self._preferences = preferences
        self._default_language = default_language
        self._languages = tuple(languages)
        self._tasks: Set[asyncio.Task] = set()
        self._commands: Dict[str, Callable[[ConversationId], Awaitable[None]]] = {
            "/start": self._handle_help,
            "/help": self._handle_help,
            "/set_lang": self._handle_set_lang,
        }

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self, events: AsyncIterable[Union[InboundEvent, Exception]]) -> None:
        async for item in events:
            if isinstance(item, Exception):
                logger.error("dispatch.updates.error: %s", item)
                continue
            self.submit(item)

    def submit(self, event: InboundEvent) -> asyncio.Task:
        task = asyncio.create_task(self.dispatch(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight events, cancelling whatever outlives ``timeout``."""

        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("dispatch.drain.cancelled %d in-flight events", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    async def dispatch(self, event: InboundEvent) -> None:
        try:
            await self._route(event)
        except ChatTransportError as exc:
            logger.error("dispatch.transport_error event=%r: %s", event, exc)
        except Exception:
            logger.exception("dispatch.unhandled_error event=%r", event)

    async def _route(self, event: InboundEvent) -> None:
        if isinstance(event, CommandEvent):
            handler = self._commands.get(event.command_name)
            if handler is not None:
                await handler(event.conversation)
        elif isinstance(event, MediaEvent):
            await self._handle_media(event)
        elif isinstance(event, LanguageSelectionEvent):
            await self._handle_language_selection(event)

    async def _handle_help(self, conversation: ConversationId) -> None:
        await self._chat.send_message(conversation, HELP_TEXT)

    async def _handle_set_lang(self, conversation: ConversationId) -> None:
        buttons = [InlineButton(label=lang.friendly_name, callback_data=lang.code) for lang in self._languages]
        await self._chat.send_message(conversation, LANGUAGE_PROMPT, buttons=chunk_buttons(buttons, per_row=2))

    async def _handle_language_selection(self, event: LanguageSelectionEvent) -> None:
        code = event.language_code
        if not code.strip() or any(ch.isspace() for ch in code):
            logger.warning("dispatch.language.rejected conversation=%s code=%r", event.conversation, code)
            await self._chat.answer_callback(event.callback_id, LANGUAGE_REJECTED)
            return
        self._preferences.put(event.conversation, code)
        logger.info("dispatch.language.saved conversation=%s code=%s", event.conversation, code)
        await self._chat.answer_callback(event.callback_id, LANGUAGE_SAVED)

    async def _handle_media(self, event: MediaEvent) -> None:
        await self._signal_typing(event.conversation)

        try:
            transcript = await self._transcribe(event)
            reply = transcript if transcript.strip() else NO_SPEECH_TEXT
        except ChatTransportError as exc:
            logger.error("dispatch.media.download_failed conversation=%s: %s", event.conversation, exc)
            reply = FAILURE_TEXT
        except TranscodeError as exc:
            logger.error(
                "dispatch.media.transcode_failed conversation=%s returncode=%s: %s",
                event.conversation,
                exc.returncode,
                exc,
            )
            reply = FAILURE_TEXT
        except RecognitionApplicationError as exc:
            logger.error(
                "recognition.application_error conversation=%s status=%s body=%r",
                event.conversation,
                exc.status_code,
                exc.body,
            )
            reply = FAILURE_TEXT
        except RecognitionTransportError as exc:
            logger.error("recognition.transport_error conversation=%s: %s", event.conversation, exc)
            reply = FAILURE_TEXT
        except Exception:
            logger.exception("dispatch.media.unexpected_error conversation=%s", event.conversation)
            reply = FAILURE_TEXT

        await self._chat.send_message(event.conversation, reply, reply_to=event.message_id)

    async def _transcribe(self, event: MediaEvent) -> str:
        data = await self._chat.download_media(event.file_reference)
        audio = await self._transcoder.transcode(MediaPayload(kind=event.kind, data=data))
        language = self._preferences.get(event.conversation) or self._default_language
        return await self._recognizer.recognize(audio, language)

    async def _signal_typing(self, conversation: ConversationId) -> None:
        try:
            await self._chat.send_typing(conversation)
        except Exception as exc:
            logger.warning("dispatch.typing.failed conversation=%s: %s", conversation, exc)


__all__ = [
    "EventDispatcher",
    "HELP_TEXT",
    "FAILURE_TEXT",
    "NO_SPEECH_TEXT",
    "LANGUAGE_PROMPT",
    "LANGUAGE_SAVED",
    "LANGUAGE_REJECTED",
]
