from __future__ import annotations

import fcntl
import logging
import os
from typing import IO, Optional

log = logging.getLogger("buha.single_writer")


class SingleWriterError(RuntimeError):
    pass


class SingleWriterLock:
    """
    Enforces a single-process writer for the engine's SQLite store.
    Uses a filesystem lock (flock). Linux/macOS only.
    """

    def __init__(self, path: str):
        self.path = path
        self._fd: Optional[IO[str]] = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        if self._fd is not None:
            return
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fd = open(self.path, "w")
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            fd.close()
            log.error("single-writer lock already held: %s", self.path)
            raise SingleWriterError(f"single-writer lock already held: {self.path}")
        fd.write(str(os.getpid()))
        fd.flush()
        self._fd = fd

    def release(self) -> None:
        if self._fd:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
            finally:
                self._fd.close()
                self._fd = None

    def __enter__(self) -> "SingleWriterLock":
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
