"""Attachment lifecycle: upload, list, download and delete files on tasks.

The blob transfer for an upload runs outside the task's write lock; only
appending the record and persisting the task is serialized. Every path
that fails after bytes reached the blob store removes them again, so an
attachment record exists if and only if its blob does.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Union

from taskboard.errors import (
    InvalidInputError,
    NotFoundError,
    PayloadTooLargeError,
    StorageFailure,
    UploadCancelledError,
)
from taskboard.locks import TaskLockManager
from taskboard.models import Attachment, Task, utcnow
from taskboard.policy import Action, require
from taskboard.ports import BlobStore, ContentRef, TaskRepository
from taskboard.users import ActorRef, UserDirectory

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_CHUNK_BYTES = 1024 * 1024

Content = Union[bytes, BinaryIO, Iterable[bytes]]


@dataclass(frozen=True)
class Download:
    """What a caller needs to hand a stored file back to the end user."""
    file_name: str
    byte_size: int
    chunks: Iterator[bytes]


def _iter_chunks(content: Content, chunk_size: int) -> Iterator[bytes]:
    """Yield *content* as byte chunks whatever shape it arrives in."""
    if isinstance(content, (bytes, bytearray, memoryview)):
        data = bytes(content)
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
        return
    read = getattr(content, "read", None)
    if read is not None:
        while True:
            chunk = read(chunk_size)
            if not chunk:
                return
            yield chunk
    else:
        yield from content


class AttachmentManager:
    """Stores attachment payloads and keeps each task's list consistent.

    Args:
        repository: Task storage.
        blobs: Payload storage.
        users: Directory used to refresh the acting user on every call.
        locks: Shared per-task write lock manager.
        max_upload_bytes: Largest accepted payload.
        chunk_size: Read size used when *content* is a file object.
    """

    def __init__(
        self,
        repository: TaskRepository,
        blobs: BlobStore,
        users: UserDirectory,
        locks: TaskLockManager,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        chunk_size: int = DEFAULT_CHUNK_BYTES,
    ) -> None:
        self._repository = repository
        self._blobs = blobs
        self._users = users
        self._locks = locks
        self.max_upload_bytes = max_upload_bytes
        self._chunk_size = chunk_size

    # -- public API -----------------------------------------------------------

    def upload_attachment(
        self,
        actor: ActorRef,
        task_id: str,
        file_name: str,
        byte_size: int,
        content: Content,
        cancel: threading.Event | None = None,
    ) -> Attachment:
        """Store *content* and attach it to a task.

        The declared *byte_size* is checked against the limit before any
        byte reaches the blob store; the stream itself is metered too and
        must match the declared size exactly.

        Args:
            actor: The uploading user.
            task_id: Target task.
            file_name: Name presented back on download.
            byte_size: Declared payload size in bytes.
            content: Raw bytes, a binary file object, or an iterable of chunks.
            cancel: Optional event; once set, the transfer is aborted and
                no attachment is recorded.

        Returns:
            The new :class:`Attachment` record.

        Raises:
            NotFoundError: The task does not exist (or vanished mid-upload).
            UnauthorizedError: The actor may not upload to this task.
            InvalidInputError: Empty file name, negative size, or a stream
                whose length differs from *byte_size*.
            PayloadTooLargeError: *byte_size* exceeds the limit.
            UploadCancelledError: *cancel* was set before completion.
            StorageFailure: The blob store or repository failed.
        """
        acting = self._users.resolve_actor(actor)
        task = self._load(task_id)
        require(acting, task, Action.upload_attachment)

        file_name = (file_name or "").strip()
        if not file_name:
            raise InvalidInputError("file_name must not be empty")
        if byte_size < 0:
            raise InvalidInputError("byte_size must not be negative")
        if byte_size > self.max_upload_bytes:
            raise PayloadTooLargeError(
                f"{byte_size} bytes exceeds the {self.max_upload_bytes} byte limit"
            )

        ref = self._blobs.store(self._metered(content, byte_size, cancel))
        try:
            if cancel is not None and cancel.is_set():
                raise UploadCancelledError(f"Upload of {file_name} was cancelled")
            with self._locks.hold(task_id):
                current = self._load(task_id)
                require(self._users.resolve_actor(acting), current, Action.upload_attachment)
                attachment = Attachment(
                    file_name=file_name,
                    byte_size=byte_size,
                    content_ref=ref,
                    uploaded_by=acting.id,
                )
                self._repository.put(
                    current.model_copy(
                        update={
                            "attachments": [*current.attachments, attachment],
                            "updated_at": utcnow(),
                        }
                    )
                )
        except BaseException:
            self._discard_blob(ref)
            raise

        logger.info(
            "Stored attachment %s (%s, %d bytes) on task %s",
            attachment.id, file_name, byte_size, task_id,
        )
        return attachment

    def list_attachments(self, actor: ActorRef, task_id: str) -> list[Attachment]:
        acting = self._users.resolve_actor(actor)
        task = self._load(task_id)
        require(acting, task, Action.download_attachment)
        return list(task.attachments)

    def download_attachment(
        self, actor: ActorRef, task_id: str, attachment_id: str
    ) -> Download:
        """Return the stored bytes of an attachment plus its file name."""
        acting = self._users.resolve_actor(actor)
        task = self._load(task_id)
        require(acting, task, Action.download_attachment)
        attachment = self._find(task, attachment_id)
        return Download(
            file_name=attachment.file_name,
            byte_size=attachment.byte_size,
            chunks=self._blobs.fetch(attachment.content_ref),
        )

    def delete_attachment(
        self, actor: ActorRef, task_id: str, attachment_id: str
    ) -> None:
        """Remove an attachment: blob first, then the record.

        If the blob store fails the record is kept and the error propagates.
        """
        acting = self._users.resolve_actor(actor)
        with self._locks.hold(task_id):
            task = self._load(task_id)
            require(acting, task, Action.delete_attachment)
            attachment = self._find(task, attachment_id)
            self._blobs.remove(attachment.content_ref)
            self._repository.put(
                task.model_copy(
                    update={
                        "attachments": [
                            a for a in task.attachments if a.id != attachment_id
                        ],
                        "updated_at": utcnow(),
                    }
                )
            )
        logger.info("Removed attachment %s from task %s", attachment_id, task_id)

    def purge(self, task: Task) -> Task:
        """Remove the blobs of every attachment on *task*.

        Must be called with the task's write lock held. If a removal fails,
        the task is persisted without the attachments already purged and
        the error is re-raised, leaving no record pointing at a missing blob.

        Returns:
            *task* with an empty attachment list.
        """
        remaining = list(task.attachments)
        while remaining:
            attachment = remaining[0]
            try:
                self._blobs.remove(attachment.content_ref)
            except StorageFailure:
                if len(remaining) != len(task.attachments):
                    self._repository.put(
                        task.model_copy(
                            update={"attachments": remaining, "updated_at": utcnow()}
                        )
                    )
                raise
            remaining.pop(0)
        return task.model_copy(update={"attachments": []})

    # -- private helpers ------------------------------------------------------

    def _load(self, task_id: str) -> Task:
        task = self._repository.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    @staticmethod
    def _find(task: Task, attachment_id: str) -> Attachment:
        attachment = task.find_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError(
                f"Attachment {attachment_id} not found on task {task.id}"
            )
        return attachment

    def _metered(
        self,
        content: Content,
        declared: int,
        cancel: threading.Event | None,
    ) -> Iterator[bytes]:
        """Wrap *content* so the blob store sees at most *declared* bytes."""
        received = 0
        for chunk in _iter_chunks(content, self._chunk_size):
            if cancel is not None and cancel.is_set():
                raise UploadCancelledError("Upload was cancelled")
            received += len(chunk)
            if received > self.max_upload_bytes:
                raise PayloadTooLargeError(
                    f"Stream exceeds the {self.max_upload_bytes} byte limit"
                )
            if received > declared:
                raise InvalidInputError(
                    f"Stream is longer than the declared {declared} bytes"
                )
            yield chunk
        if received != declared:
            raise InvalidInputError(
                f"Stream ended after {received} of {declared} declared bytes"
            )

    def _discard_blob(self, ref: ContentRef) -> None:
        try:
            self._blobs.remove(ref)
        except StorageFailure:
            logger.exception("Failed to discard blob %s after aborted upload", ref)
