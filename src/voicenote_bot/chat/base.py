from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Union

from ..events import ConversationId, InboundEvent


@dataclass(slots=True, frozen=True)
class InlineButton:
    label: str
    callback_data: str


ButtonRows = Sequence[Sequence[InlineButton]]


class ChatClient(Protocol):
    """Operations the dispatcher needs from a chat platform."""

    def events(self) -> AsyncIterator[Union[InboundEvent, Exception]]:
        """Yield inbound events; transport failures are yielded, not raised."""
        ...

    async def send_message(
        self,
        conversation: ConversationId,
        text: str,
        *,
        reply_to: Optional[int] = None,
        buttons: Optional[ButtonRows] = None,
    ) -> None:
        ...

    async def send_typing(self, conversation: ConversationId) -> None:
        ...

    async def answer_callback(self, callback_id: str, text: str) -> None:
        ...

    async def download_media(self, file_reference: str) -> bytes:
        ...


def chunk_buttons(buttons: Sequence[InlineButton], per_row: int = 2) -> List[List[InlineButton]]:
    return [list(buttons[i : i + per_row]) for i in range(0, len(buttons), per_row)]


__all__ = ["ChatClient", "InlineButton", "ButtonRows", "chunk_buttons"]
