from __future__ import annotations

"""Per-conversation language preferences with periodic snapshot persistence."""

import asyncio
import logging
import os
import re
import stat
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional, Union

from .errors import StorageLoadError, StoragePersistError
from .events import ConversationId

logger = logging.getLogger(__name__)

_LINE_RE = re.compile(r"^(-?\d+) (.+)$")

# mode for a preference file written for the first time
DEFAULT_FILE_MODE = 0o644

PathLike = Union[str, "os.PathLike[str]"]


class ReadWriteLock:
    """Readers share the lock; a writer holds it alone."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def serialize(mapping: Mapping[ConversationId, str]) -> str:
    return "".join(f"{conversation} {code}\n" for conversation, code in mapping.items())


def parse(text: str) -> Dict[ConversationId, str]:
    """Parse the line format strictly; any malformed line is an error."""

    result: Dict[ConversationId, str] = {}
    for lineno, line in enumerate(text.split("\n"), start=1):
        if not line:
            continue
        match = _LINE_RE.match(line)
        if match is None:
            raise StorageLoadError(
                f"line {lineno}: expected '<conversation id> <language code>', got {line!r}"
            )
        result[int(match.group(1))] = match.group(2)
    return result


class PreferenceStore:
    """Thread-safe conversation → language code map backed by a flat file."""

    def __init__(self, path: PathLike, initial: Optional[Mapping[ConversationId, str]] = None) -> None:
        self._path = Path(path)
        self._map: Dict[ConversationId, str] = dict(initial or {})
        self._lock = ReadWriteLock()

    @classmethod
    def load(cls, path: PathLike) -> "PreferenceStore":
        target = Path(path)
        try:
            text = target.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("preferences.load.empty: %s does not exist yet", target)
            return cls(target)
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageLoadError(f"failed to read {target}: {exc}") from exc

        entries = parse(text)
        logger.info("preferences.load.complete: %d entries from %s", len(entries), target)
        return cls(target, entries)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, conversation: ConversationId) -> Optional[str]:
        with self._lock.read():
            return self._map.get(conversation)

    def put(self, conversation: ConversationId, code: str) -> None:
        with self._lock.write():
            self._map[conversation] = code

    def snapshot(self) -> Dict[ConversationId, str]:
        with self._lock.read():
            return dict(self._map)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._map)

    def persist(self) -> None:
        """Write a full snapshot next to the target and atomically swap it in."""

        data = serialize(self.snapshot())
        directory = self._path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self._path.name}-",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            # NamedTemporaryFile is created 0600; keep the target's mode across the swap
            os.chmod(tmp_name, self._target_mode())
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise StoragePersistError(f"failed to persist preferences to {self._path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.remove(tmp_name)
                except OSError:
                    logger.debug("preferences.persist.tmp_cleanup_failed: %s", tmp_name, exc_info=True)

    def _target_mode(self) -> int:
        try:
            return stat.S_IMODE(self._path.stat().st_mode)
        except FileNotFoundError:
            return DEFAULT_FILE_MODE


class PreferencePersister:
    """Background task that snapshots a :class:`PreferenceStore` on an interval."""

    def __init__(self, store: PreferenceStore, *, interval: float = 10.0) -> None:
        self._store = store
        self._interval = interval
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if self._task is not None:
            raise RuntimeError("persister already started")
        self._task = asyncio.create_task(self._runner(), name="preferences-persister")
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task is not None:
            await self._task
        # final snapshot so a clean shutdown loses nothing
        await self.persist_once()

    async def persist_once(self) -> bool:
        try:
            await asyncio.to_thread(self._store.persist)
        except StoragePersistError as exc:
            logger.error("preferences.persist.error: %s", exc)
            return False
        return True

    async def _runner(self) -> None:
        while not self._stop_event.is_set():
            await self.persist_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass


__all__ = [
    "PreferenceStore",
    "PreferencePersister",
    "ReadWriteLock",
    "DEFAULT_FILE_MODE",
    "serialize",
    "parse",
]
