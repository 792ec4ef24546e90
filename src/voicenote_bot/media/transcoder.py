from __future__ import annotations

"""Normalizes voice and video notes into 16 kHz mono PCM WAV via ffmpeg."""

import asyncio
import logging
import os
import shutil
import subprocess
import tempfile
from typing import List

from ..errors import TranscodeError
from .types import MediaPayload

logger = logging.getLogger(__name__)

TARGET_SAMPLE_RATE = 16000
TARGET_CHANNELS = 1


def build_command(binary: str, input_path: str) -> List[str]:
    return [
        binary,
        "-i",
        input_path,
        "-vn",
        "-acodec",
        "pcm_s16le",
        "-ac",
        str(TARGET_CHANNELS),
        "-ar",
        str(TARGET_SAMPLE_RATE),
        "-f",
        "wav",
        "pipe:",
    ]


class MediaTranscoder:
    """Runs the external transcoder on a worker thread."""

    def __init__(self, *, binary: str = "ffmpeg", timeout: float = 120.0) -> None:
        self._binary = binary
        self._timeout = timeout

    @property
    def binary(self) -> str:
        return self._binary

    def is_available(self) -> bool:
        return shutil.which(self._binary) is not None

    async def transcode(self, payload: MediaPayload) -> bytes:
        return await asyncio.to_thread(self.transcode_sync, payload)

    def transcode_sync(self, payload: MediaPayload) -> bytes:
        input_path = None
        try:
            try:
                with tempfile.NamedTemporaryFile(
                    prefix="voicenote-", suffix=payload.kind.suffix, delete=False
                ) as fh:
                    input_path = fh.name
                    fh.write(payload.data)
            except OSError as exc:
                raise TranscodeError(f"failed to write media to temporary file: {exc}") from exc

            return self._run(input_path)
        finally:
            if input_path is not None:
                self._remove(input_path)

    def _run(self, input_path: str) -> bytes:
        cmd = build_command(self._binary, input_path)
        try:
            result = subprocess.run(cmd, capture_output=True, timeout=self._timeout, check=False)
        except subprocess.TimeoutExpired as exc:
            raise TranscodeError(f"{self._binary} timed out after {self._timeout:g}s") from exc
        except OSError as exc:
            raise TranscodeError(f"failed to start {self._binary}: {exc}") from exc

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise TranscodeError(
                f"{self._binary} exited with code {result.returncode}: {stderr}",
                returncode=result.returncode,
                stderr=stderr,
            )

        logger.debug(
            "transcoder.complete input_bytes=%d output_bytes=%d",
            os.path.getsize(input_path),
            len(result.stdout),
        )
        return result.stdout

    def _remove(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise TranscodeError(f"failed to remove temporary file {path}: {exc}") from exc


__all__ = ["MediaTranscoder", "build_command", "TARGET_SAMPLE_RATE", "TARGET_CHANNELS"]
