from __future__ import annotations

"""HTTP client for the remote speech recognition endpoint."""

import logging
from typing import Optional, Tuple

import httpx

from ..errors import RecognitionApplicationError, RecognitionTransportError
from .languages import SUPPORTED_LANGUAGES, Language

logger = logging.getLogger(__name__)


class RecognitionClient:
    """Posts normalized WAV audio and returns the transcript text.

    The endpoint takes the language as a ``lang`` query parameter and the raw
    audio as the request body. A 2xx reply body is the transcript itself;
    anything else is surfaced as :class:`RecognitionApplicationError` and is
    never retried here.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = base_url
        if client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0))
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    async def __aenter__(self) -> "RecognitionClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @staticmethod
    def languages() -> Tuple[Language, ...]:
        return SUPPORTED_LANGUAGES

    async def recognize(self, audio: bytes, language: str) -> str:
        try:
            response = await self._client.post(
                self._url,
                params={"lang": language},
                content=audio,
                headers={"Content-Type": "audio/wav"},
            )
        except httpx.HTTPError as exc:
            raise RecognitionTransportError(f"recognizer request failed: {exc!r}") from exc

        if not response.is_success:
            body = response.content.decode("utf-8", errors="replace")
            raise RecognitionApplicationError(response.status_code, body)

        try:
            text = response.content.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RecognitionTransportError("recognizer returned a non UTF-8 body") from exc

        logger.info(
            "recognition.complete lang=%s audio_bytes=%d chars=%d", language, len(audio), len(text)
        )
        return text


__all__ = ["RecognitionClient"]
