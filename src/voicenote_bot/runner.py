from __future__ import annotations

"""Process entrypoint: wires the components and runs until shutdown."""

import asyncio
import logging
import signal
from typing import Optional

from .chat.base import ChatClient
from .chat.telegram import TelegramBotClient
from .dispatcher import EventDispatcher
from .errors import ConfigError, StorageLoadError
from .logging_setup import setup_logging
from .media.transcoder import MediaTranscoder
from .preferences import PreferencePersister, PreferenceStore
from .recognition.client import RecognitionClient
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT_SECONDS = 15.0


def _install_signal_handlers(shutdown_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, shutdown_event.set)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - non-Unix event loops
            signal.signal(signum, lambda *_: loop.call_soon_threadsafe(shutdown_event.set))


async def serve(
    settings: Settings,
    *,
    chat: Optional[ChatClient] = None,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the bot until ``shutdown_event`` is set or the update stream ends."""

    store = PreferenceStore.load(settings.preferences.path)

    transcoder = MediaTranscoder(binary=settings.transcoder.binary, timeout=settings.transcoder.timeout)
    if not transcoder.is_available():
        logger.warning("startup.transcoder_missing: %s not found in PATH, media will fail", transcoder.binary)

    recognizer = RecognitionClient(settings.recognizer.uri, timeout=settings.recognizer.timeout)
    owned_chat: Optional[TelegramBotClient] = None
    if chat is None:
        owned_chat = TelegramBotClient(
            settings.telegram.token,
            api_url=settings.telegram.api_url,
            poll_timeout=settings.telegram.poll_timeout,
        )
        chat = owned_chat

    dispatcher = EventDispatcher(
        chat=chat,
        transcoder=transcoder,
        recognizer=recognizer,
        preferences=store,
        default_language=settings.preferences.default_language,
    )
    persister = PreferencePersister(store, interval=settings.preferences.sync_interval)

    if shutdown_event is None:
        shutdown_event = asyncio.Event()
        _install_signal_handlers(shutdown_event)

    persister.start()
    run_task = asyncio.create_task(dispatcher.run(chat.events()), name="dispatcher")
    stop_task = asyncio.create_task(shutdown_event.wait(), name="shutdown-wait")
    logger.info("startup.complete: %d stored preferences", len(store))

    try:
        done, _ = await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
        if run_task in done and not run_task.cancelled() and run_task.exception() is not None:
            logger.error("dispatcher.stopped: %r", run_task.exception())
    finally:
        logger.info("shutdown.begin: %d events in flight", dispatcher.in_flight)
        for task in (run_task, stop_task):
            task.cancel()
        await asyncio.gather(run_task, stop_task, return_exceptions=True)
        await dispatcher.drain(timeout=DRAIN_TIMEOUT_SECONDS)
        await persister.stop()
        await recognizer.close()
        if owned_chat is not None:
            await owned_chat.close()
        logger.info("shutdown.complete")


def main() -> int:
    try:
        settings = load_settings()
    except ConfigError as exc:
        setup_logging()
        logger.error("startup.config_invalid: %s", exc)
        return 1

    setup_logging(settings.log_level)
    logger.info("startup.begin")
    try:
        asyncio.run(serve(settings))
    except StorageLoadError as exc:
        logger.error("startup.preferences_invalid: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
    return 0


__all__ = ["serve", "main"]
