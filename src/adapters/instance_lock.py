"""Single-instance guard backed by an exclusive file lock."""

from __future__ import annotations

import fcntl
import logging
import os
from typing import IO, Optional

LOGGER = logging.getLogger(__name__)


class AlreadyRunningError(RuntimeError):
    """Another process holds the lock."""


class InstanceLock:
    """Hold an exclusive, non-blocking ``flock`` for the process lifetime."""

    def __init__(self, path: str) -> None:
        self._path = path
        self._handle: Optional[IO[str]] = None

    def acquire(self) -> None:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handle = open(self._path, "a+", encoding="utf-8")
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as exc:
            handle.close()
            raise AlreadyRunningError(f"Another instance holds {self._path}") from exc
        handle.seek(0)
        handle.truncate()
        handle.write(f"{os.getpid()}\n")
        handle.flush()
        self._handle = handle
        LOGGER.debug("Acquired instance lock %s", self._path)

    def release(self) -> None:
        if self._handle is None:
            return
        fcntl.flock(self._handle.fileno(), fcntl.LOCK_UN)
        self._handle.close()
        self._handle = None

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
