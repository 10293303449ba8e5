"""In-process collaborators: tasks, users and blobs held in dicts.

Records are deep-copied on the way in and out so callers can never
mutate stored state by holding on to a returned object.
"""

from __future__ import annotations

import threading
import uuid
from typing import Iterable, Iterator, Optional

from taskboard.errors import NotFoundError
from taskboard.models import Task, User


class InMemoryTaskRepository:
    """Dict-backed task store. ``list()`` returns insertion order."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()

    def get(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task is not None else None

    def put(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task.model_copy(deep=True)

    def delete(self, task_id: str) -> None:
        with self._lock:
            self._tasks.pop(task_id, None)

    def list_by_owner(self, owner_id: str) -> list[Task]:
        with self._lock:
            return [
                t.model_copy(deep=True)
                for t in self._tasks.values()
                if t.owner_id == owner_id
            ]

    def list(self) -> list[Task]:
        with self._lock:
            return [t.model_copy(deep=True) for t in self._tasks.values()]


class InMemoryUserService:
    """Dict-backed user store."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users: dict[str, User] = {u.id: u.model_copy(deep=True) for u in users}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy(deep=True) if user is not None else None

    def list(self) -> list[User]:
        with self._lock:
            return [u.model_copy(deep=True) for u in self._users.values()]

    def put(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = user.model_copy(deep=True)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)


class InMemoryBlobStore:
    """Holds payloads as bytes keyed by a random reference."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, chunks: Iterable[bytes]) -> str:
        # Consume fully before publishing; a failing stream leaves nothing behind.
        data = b"".join(chunks)
        ref = uuid.uuid4().hex
        with self._lock:
            self._blobs[ref] = data
        return ref

    def fetch(self, ref: str) -> Iterator[bytes]:
        with self._lock:
            data = self._blobs.get(ref)
        if data is None:
            raise NotFoundError(f"Blob {ref} not found")
        return iter((data,))

    def remove(self, ref: str) -> None:
        with self._lock:
            self._blobs.pop(ref, None)

    def __contains__(self, ref: str) -> bool:
        with self._lock:
            return ref in self._blobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)
