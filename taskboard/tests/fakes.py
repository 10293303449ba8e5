"""Collaborator fakes that record or fail on demand."""

from typing import Iterable

from taskboard.errors import StorageFailure
from taskboard.storage.memory import InMemoryBlobStore, InMemoryTaskRepository


class RecordingBlobStore(InMemoryBlobStore):
    """In-memory blob store that logs calls into a shared event list."""

    def __init__(self, events: list) -> None:
        super().__init__()
        self.events = events
        self.fail_store = False
        self.fail_remove: set[str] = set()

    def store(self, chunks: Iterable[bytes]) -> str:
        self.events.append(("store",))
        if self.fail_store:
            # Drain part of the stream first, like a connection dropping mid-transfer.
            next(iter(chunks), None)
            raise StorageFailure("blob backend unavailable")
        ref = super().store(chunks)
        self.events.append(("stored", ref))
        return ref

    def remove(self, ref: str) -> None:
        self.events.append(("remove", ref))
        if ref in self.fail_remove:
            raise StorageFailure(f"cannot remove {ref}")
        super().remove(ref)


class RecordingTaskRepository(InMemoryTaskRepository):
    def __init__(self, events: list) -> None:
        super().__init__()
        self.events = events
        self.fail_delete = False

    def delete(self, task_id: str) -> None:
        self.events.append(("delete", task_id))
        if self.fail_delete:
            raise StorageFailure(f"cannot delete {task_id}")
        super().delete(task_id)
