"""Per-task write serialization.

At most one mutation per task id runs at a time. Writers on the same
task queue up behind each other; writers on different tasks and all
readers proceed without waiting.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.holders = 0


class TaskLockManager:
    """Thread-safe manager mapping task ids to re-entrant locks.

    Internal state:
        _entries: dict mapping task_id -> _Entry (lock + waiter count)
        _lock: threading.Lock guarding _entries

    Entries are created on first use and dropped once no thread holds or
    waits on them, so the map only ever contains tasks being written.
    The lock is re-entrant: an operation holding a task's lock may call
    another operation that locks the same task.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, task_id: str) -> Iterator[None]:
        """Block until the write lock for *task_id* is held, then yield."""
        with self._lock:
            entry = self._entries.get(task_id)
            if entry is None:
                entry = _Entry()
                self._entries[task_id] = entry
            entry.holders += 1

        entry.lock.acquire()
        logger.debug("Acquired write lock for task %s", task_id)
        try:
            yield
        finally:
            entry.lock.release()
            with self._lock:
                entry.holders -= 1
                if entry.holders == 0:
                    self._entries.pop(task_id, None)
            logger.debug("Released write lock for task %s", task_id)

    def is_active(self, task_id: str) -> bool:
        """Return True while some thread holds or waits on *task_id*."""
        with self._lock:
            return task_id in self._entries
