"""Keeps a second controller from running against the same store."""

import fcntl
import logging
import os
from pathlib import Path
from typing import IO, Mapping, Optional

from constants import DEFAULT_STATE_DIR, DEFAULT_STORE_FILE, INSTANCE_LOCK_FILE

logger = logging.getLogger(__name__)


def instance_lock_path(store_config: Mapping) -> Path:
    """
    Place the lock next to the shared file when the file store is used,
    so controllers sharing one file exclude each other. Other backends
    use the per-user state directory.
    """
    if store_config.get('backend', 'file') == 'file':
        directory = Path(store_config.get('path') or DEFAULT_STORE_FILE).expanduser().parent
    else:
        directory = Path(DEFAULT_STATE_DIR).expanduser()
    return directory / INSTANCE_LOCK_FILE


class InstanceLock:
    """
    Non-blocking exclusive flock held for the life of the controller.

    The kernel drops the lock when the holder exits, so a crashed
    controller never leaves a stale lock behind. The file only records
    the holder's PID for the error message.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._file: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._file is not None

    def holder_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def acquire(self) -> bool:
        """True if the lock was taken, False if another process holds it."""
        if self._file is not None:
            return True
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # "a+" keeps the current holder's PID readable if we lose.
        lock_file = open(self.path, "a+")
        try:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            lock_file.close()
            logger.debug(f"Instance lock {self.path} is held by PID {self.holder_pid()}")
            return False
        except OSError:
            lock_file.close()
            raise

        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(str(os.getpid()))
        lock_file.flush()
        self._file = lock_file
        logger.debug(f"Acquired instance lock {self.path} (PID {os.getpid()})")
        return True

    def release(self):
        """Safe to call more than once."""
        if self._file is None:
            return
        try:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
        finally:
            self._file.close()
            self._file = None
        logger.debug(f"Released instance lock {self.path}")

    def __enter__(self) -> "InstanceLock":
        if not self.acquire():
            raise RuntimeError(f"Another controller holds {self.path} (PID {self.holder_pid()})")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
