"""Lock shared by every engine working on the same data directory.

The record files are rewritten whole, so two writers (the bot and a CLI
command, or two engines in one process) must not interleave their
read/modify/write cycles.
"""

import logging
import threading
from pathlib import Path

from filelock import FileLock

logger = logging.getLogger(__name__)

# One thread lock per resolved lock file, shared by every DataLock in the process
_thread_locks: dict[Path, threading.RLock] = {}
_registry_lock = threading.Lock()


def _thread_lock_for(path: Path) -> threading.RLock:
    with _registry_lock:
        lock = _thread_locks.get(path)
        if lock is None:
            lock = _thread_locks[path] = threading.RLock()
        return lock


class DataLock:
    """Re-entrant lock over a data directory, across threads and processes.

    Threads in one process queue on a shared RLock; processes queue on an
    OS file lock at ``path``.
    """

    def __init__(self, path: Path):
        self.path = Path(path).resolve()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._thread_lock = _thread_lock_for(self.path)
        # Only the thread holding _thread_lock touches the file lock
        self._file_lock = FileLock(str(self.path), thread_local=False)

    def __enter__(self) -> "DataLock":
        self._thread_lock.acquire()
        try:
            self._file_lock.acquire()
        except BaseException:
            self._thread_lock.release()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self._file_lock.release()
        finally:
            self._thread_lock.release()

    def __repr__(self) -> str:
        return f"DataLock({self.path})"
