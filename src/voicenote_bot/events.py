from __future__ import annotations

"""Internal representation of inbound chat events.

The chat adapter turns whatever its client library delivers into one of the
variants below, so the dispatcher only ever matches on this union.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .media.types import MediaKind

ConversationId = int


@dataclass(slots=True, frozen=True)
class CommandEvent:
    conversation: ConversationId
    command_name: str


@dataclass(slots=True, frozen=True)
class MediaEvent:
    conversation: ConversationId
    message_id: int
    kind: MediaKind
    file_reference: str


@dataclass(slots=True, frozen=True)
class LanguageSelectionEvent:
    conversation: ConversationId
    callback_id: str
    language_code: str


@dataclass(slots=True, frozen=True)
class OtherEvent:
    update_id: Optional[int] = None


InboundEvent = Union[CommandEvent, MediaEvent, LanguageSelectionEvent, OtherEvent]


__all__ = [
    "ConversationId",
    "CommandEvent",
    "MediaEvent",
    "LanguageSelectionEvent",
    "OtherEvent",
    "InboundEvent",
]
