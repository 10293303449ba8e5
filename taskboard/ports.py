"""
Ports (interfaces) the core depends on.

Storage of tasks, users and file payloads lives outside the core. Concrete
implementations are in ``taskboard.storage``; tests swap in fakes freely.
Implementations raise ``StorageFailure`` when the backing store fails.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional, Protocol

from taskboard.models import Task, User

ContentRef = str
# Opaque handle returned by BlobStore.store().


class TaskRepository(Protocol):
    def get(self, task_id: str) -> Optional[Task]: ...
    def put(self, task: Task) -> None: ...
    def delete(self, task_id: str) -> None: ...
    def list_by_owner(self, owner_id: str) -> list[Task]: ...
    def list(self) -> list[Task]: ...


class BlobStore(Protocol):
    """
    Binary payload storage.

    ``store`` consumes an iterable of byte chunks. If iterating the chunks
    raises, nothing may remain stored and the exception must propagate.
    ``fetch`` raises ``NotFoundError`` for an unknown reference.
    ``remove`` of an unknown reference is a no-op.
    """

    def store(self, chunks: Iterable[bytes]) -> ContentRef: ...
    def fetch(self, ref: ContentRef) -> Iterator[bytes]: ...
    def remove(self, ref: ContentRef) -> None: ...


class UserService(Protocol):
    def get(self, user_id: str) -> Optional[User]: ...
    def list(self) -> list[User]: ...
    def put(self, user: User) -> None: ...
    def delete(self, user_id: str) -> None: ...
