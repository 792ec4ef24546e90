"""Chat platform boundary."""

from .base import ButtonRows, ChatClient, InlineButton, chunk_buttons
from .telegram import TelegramBotClient, adapt_update

__all__ = [
    "ChatClient",
    "InlineButton",
    "ButtonRows",
    "chunk_buttons",
    "TelegramBotClient",
    "adapt_update",
]
