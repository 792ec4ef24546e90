from __future__ import annotations

"""Exception hierarchy shared by the bot components."""

from typing import Optional


class VoiceNoteBotError(Exception):
    """Base class for every error raised by voicenote-bot."""


class ConfigError(VoiceNoteBotError):
    """Raised when runtime configuration is missing or invalid."""


class ChatTransportError(VoiceNoteBotError):
    """Raised when the chat platform cannot be reached or rejects a request."""


class TranscodeError(VoiceNoteBotError):
    """Raised when the external transcoder fails to normalize a payload."""

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class RecognitionError(VoiceNoteBotError):
    """Base class for recognition endpoint failures."""


class RecognitionTransportError(RecognitionError):
    """The recognition endpoint was unreachable or its reply was undecodable."""


class RecognitionApplicationError(RecognitionError):
    """The recognition endpoint answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"recognizer responded with status {status_code} and body {body!r}")
        self.status_code = status_code
        self.body = body


class StorageLoadError(VoiceNoteBotError):
    """The persisted preference file exists but cannot be read or parsed."""


class StoragePersistError(VoiceNoteBotError):
    """A preference snapshot could not be written."""


__all__ = [
    "VoiceNoteBotError",
    "ConfigError",
    "ChatTransportError",
    "TranscodeError",
    "RecognitionError",
    "RecognitionTransportError",
    "RecognitionApplicationError",
    "StorageLoadError",
    "StoragePersistError",
]
