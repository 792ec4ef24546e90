from __future__ import annotations

import enum
from dataclasses import dataclass


class MediaKind(enum.Enum):
    """Attachment kinds the bot can transcribe."""

    AUDIO = "audio"
    VIDEO = "video"

    @property
    def suffix(self) -> str:
        # ffmpeg picks the demuxer from the extension
        return ".oga" if self is MediaKind.AUDIO else ".mp4"


@dataclass(slots=True, frozen=True)
class MediaPayload:
    """Raw attachment bytes as downloaded from the chat platform."""

    kind: MediaKind
    data: bytes

    def __repr__(self) -> str:
        return f"MediaPayload(kind={self.kind.value}, size={len(self.data)})"
