"""Shared store backed by a JSON file on the local filesystem."""

import asyncio
import fcntl
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, TypeVar

from constants import DEFAULT_STORE_FILE, STORE_LOCK_TIMEOUT
from shared_store import SharedStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FileStore(SharedStore):
    """
    One JSON object shared by both processes.

    Readers take a shared flock on the data file. Every mutation holds an
    exclusive flock on a sidecar ".lock" file for the whole
    read-modify-write and swaps the data file in with os.replace, so a
    reader never sees a partial write and a claim is won by one caller.
    """

    def __init__(self, path: Optional[str] = None, lock_timeout: float = STORE_LOCK_TIMEOUT):
        self.path = Path(path or DEFAULT_STORE_FILE).expanduser()
        self.lock_path = self.path.with_suffix(self.path.suffix + ".lock")
        self.lock_timeout = lock_timeout

    async def connect(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Using shared store file {self.path}")

    async def get(self, key: str) -> Optional[str]:
        data = await self._run(self._read)
        value = data.get(key)
        return None if value is None else str(value)

    async def set_many(self, values: Mapping[str, str]):
        values = dict(values)

        def _apply(data: Dict[str, str]) -> None:
            data.update(values)

        await self._run(lambda: self._update(_apply))

    async def claim(self, key: str, *companions: str) -> Optional[Dict[str, str]]:
        def _apply(data: Dict[str, str]) -> Optional[Dict[str, str]]:
            if key not in data:
                return None
            claimed = {key: data.pop(key)}
            for other in companions:
                if other in data:
                    claimed[other] = data.pop(other)
            return claimed

        return await self._run(lambda: self._update(_apply))

    async def _run(self, func: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    def _read(self) -> Dict[str, str]:
        """Read with a shared lock; missing or corrupt files read as empty."""
        try:
            fd = os.open(str(self.path), os.O_RDONLY)
        except FileNotFoundError:
            return {}
        try:
            fcntl.flock(fd, fcntl.LOCK_SH)
            try:
                with os.fdopen(os.dup(fd), "r", encoding="utf-8") as f:
                    content = f.read()
            finally:
                fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        return self._decode(content)

    def _decode(self, content: str) -> Dict[str, str]:
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt shared store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring shared store {self.path}: not a JSON object")
            return {}
        return data

    def _update(self, mutate: Callable[[Dict[str, str]], T]) -> T:
        """Read-modify-write under the exclusive sidecar lock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        lock_fd = os.open(str(self.lock_path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            deadline = time.monotonic() + self.lock_timeout
            while True:
                try:
                    fcntl.flock(lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() > deadline:
                        raise TimeoutError(
                            f"Lock acquisition on {self.lock_path} timed out after {self.lock_timeout}s"
                        )
                    time.sleep(0.05)
            try:
                data = self._read()
                before = dict(data)
                result = mutate(data)
                if data != before:
                    self._write(data)
                return result
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(lock_fd)

    def _write(self, data: Dict[str, str]):
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent),
            prefix=f".{self.path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
