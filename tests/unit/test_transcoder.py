import os
import stat
import subprocess
import sys
import tempfile
import threading
from pathlib import Path

import pytest

from voicenote_bot.errors import TranscodeError
from voicenote_bot.media.transcoder import MediaTranscoder, build_command
from voicenote_bot.media.types import MediaKind, MediaPayload


@pytest.fixture
def isolated_tmp(monkeypatch, tmp_path):
    """Route tempfile into a private directory so leftovers are visible."""
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    return tmp_path


class _RunRecorder:
    def __init__(self, *, returncode=0, stdout=b"", stderr=b"", raises=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.cmd = None
        self.input_seen = None
        self.kwargs = None
        self.thread_id = None

    def __call__(self, cmd, **kwargs):
        self.cmd = cmd
        self.thread_id = threading.get_ident()
        self.kwargs = kwargs
        input_path = cmd[cmd.index("-i") + 1]
        with open(input_path, "rb") as fh:
            self.input_seen = fh.read()
        if self.raises is not None:
            raise self.raises
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)

    @property
    def input_path(self) -> str:
        return self.cmd[self.cmd.index("-i") + 1]


def test_build_command_requests_mono_16k_wav_on_stdout():
    assert build_command("ffmpeg", "/tmp/in.oga") == [
        "ffmpeg",
        "-i",
        "/tmp/in.oga",
        "-vn",
        "-acodec",
        "pcm_s16le",
        "-ac",
        "1",
        "-ar",
        "16000",
        "-f",
        "wav",
        "pipe:",
    ]


@pytest.mark.parametrize("kind, suffix", [(MediaKind.AUDIO, ".oga"), (MediaKind.VIDEO, ".mp4")])
def test_transcode_returns_stdout_and_removes_input(monkeypatch, isolated_tmp, kind, suffix):
    recorder = _RunRecorder(stdout=b"RIFFwav-bytes")
    monkeypatch.setattr("voicenote_bot.media.transcoder.subprocess.run", recorder)

    result = MediaTranscoder(timeout=5.0).transcode_sync(MediaPayload(kind=kind, data=b"opus-data"))

    assert result == b"RIFFwav-bytes"
    assert recorder.input_seen == b"opus-data"
    assert recorder.input_path.endswith(suffix)
    assert recorder.kwargs["timeout"] == 5.0
    assert recorder.kwargs["capture_output"] is True
    assert not os.path.exists(recorder.input_path)
    assert list(isolated_tmp.iterdir()) == []


def test_transcode_nonzero_exit_raises_with_stderr(monkeypatch, isolated_tmp):
    recorder = _RunRecorder(returncode=1, stderr=b"Invalid data found when processing input\n")
    monkeypatch.setattr("voicenote_bot.media.transcoder.subprocess.run", recorder)

    with pytest.raises(TranscodeError) as excinfo:
        MediaTranscoder().transcode_sync(MediaPayload(kind=MediaKind.AUDIO, data=b"garbage"))

    assert excinfo.value.returncode == 1
    assert excinfo.value.stderr == "Invalid data found when processing input"
    assert not os.path.exists(recorder.input_path)


def test_transcode_timeout_raises_and_cleans_up(monkeypatch, isolated_tmp):
    recorder = _RunRecorder(raises=subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1.0))
    monkeypatch.setattr("voicenote_bot.media.transcoder.subprocess.run", recorder)

    with pytest.raises(TranscodeError, match="timed out"):
        MediaTranscoder(timeout=1.0).transcode_sync(MediaPayload(kind=MediaKind.VIDEO, data=b"mp4"))

    assert list(isolated_tmp.iterdir()) == []


def test_transcode_missing_binary_raises(isolated_tmp):
    transcoder = MediaTranscoder(binary="voicenote-no-such-transcoder")

    assert transcoder.is_available() is False
    with pytest.raises(TranscodeError, match="failed to start"):
        transcoder.transcode_sync(MediaPayload(kind=MediaKind.AUDIO, data=b"abc"))

    assert list(isolated_tmp.iterdir()) == []


def test_transcode_write_failure_raises(monkeypatch, tmp_path):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path / "does-not-exist"))

    with pytest.raises(TranscodeError, match="temporary file"):
        MediaTranscoder().transcode_sync(MediaPayload(kind=MediaKind.AUDIO, data=b"abc"))


@pytest.mark.asyncio
async def test_transcode_async_runs_off_loop(monkeypatch, isolated_tmp):
    recorder = _RunRecorder(stdout=b"RIFF")
    monkeypatch.setattr("voicenote_bot.media.transcoder.subprocess.run", recorder)

    result = await MediaTranscoder().transcode(MediaPayload(kind=MediaKind.AUDIO, data=b"x"))

    assert result == b"RIFF"
    assert recorder.thread_id is not None
    assert recorder.thread_id != threading.get_ident()


def _write_script(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_transcode_with_failing_process(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(work))
    script = _write_script(tmp_path / "fake-ffmpeg", 'echo "moov atom not found" >&2\nexit 1\n')

    with pytest.raises(TranscodeError) as excinfo:
        MediaTranscoder(binary=str(script)).transcode_sync(MediaPayload(kind=MediaKind.VIDEO, data=b"broken"))

    assert excinfo.value.returncode == 1
    assert "moov atom not found" in excinfo.value.stderr
    assert list(work.iterdir()) == []


@pytest.mark.integration
@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell")
def test_transcode_with_succeeding_process(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(work))
    # echoes the input file back, standing in for the converted stream
    script = _write_script(tmp_path / "fake-ffmpeg", 'cat "$2"\n')

    result = MediaTranscoder(binary=str(script)).transcode_sync(MediaPayload(kind=MediaKind.AUDIO, data=b"payload"))

    assert result == b"payload"
    assert list(work.iterdir()) == []
