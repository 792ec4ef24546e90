"""
Shared fixtures: in-memory stand-ins for the chat platform, the transcoder
and the recognition endpoint.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

import pytest

from voicenote_bot.errors import ChatTransportError
from voicenote_bot.preferences import PreferenceStore


@dataclass
class SentMessage:
    conversation: int
    text: str
    reply_to: Optional[int]
    buttons: Any


class FakeChat:
    def __init__(self, events=()):
        self._events = list(events)
        self.sent: List[SentMessage] = []
        self.typing: List[int] = []
        self.answers: List[tuple] = []
        self.media: dict = {}
        self.fail_typing = False
        self.fail_send = False

    async def events(self):
        for item in self._events:
            yield item

    async def send_message(self, conversation, text, *, reply_to=None, buttons=None):
        if self.fail_send:
            raise ChatTransportError("sendMessage failed")
        self.sent.append(SentMessage(conversation, text, reply_to, buttons))

    async def send_typing(self, conversation):
        if self.fail_typing:
            raise ChatTransportError("sendChatAction failed")
        self.typing.append(conversation)

    async def answer_callback(self, callback_id, text):
        self.answers.append((callback_id, text))

    async def download_media(self, file_reference):
        if file_reference not in self.media:
            raise ChatTransportError(f"getFile failed for {file_reference}")
        return self.media[file_reference]


class FakeTranscoder:
    def __init__(self, output: bytes = b"RIFF\x00\x00\x00\x00WAVEfmt ", error: Optional[Exception] = None):
        self.output = output
        self.error = error
        self.calls = []

    async def transcode(self, payload):
        self.calls.append(payload)
        if self.error is not None:
            raise self.error
        return self.output


class FakeRecognizer:
    def __init__(self, text: str = "hello world", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = []

    async def recognize(self, audio, language):
        self.calls.append((audio, language))
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def fake_chat():
    return FakeChat()


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder()


@pytest.fixture
def fake_recognizer():
    return FakeRecognizer()


@pytest.fixture
def store(tmp_path):
    return PreferenceStore.load(tmp_path / "preferences.txt")


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: tests that spawn real subprocesses")
