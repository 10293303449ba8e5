"""Wires collaborators into the services the presentation layer calls."""

import logging
from dataclasses import dataclass

from taskboard.attachments import DEFAULT_CHUNK_BYTES, MAX_UPLOAD_BYTES, AttachmentManager
from taskboard.config import Settings
from taskboard.locks import TaskLockManager
from taskboard.ports import BlobStore, TaskRepository, UserService
from taskboard.users import UserDirectory
from taskboard.workflow import TaskWorkflow

logger = logging.getLogger(__name__)


@dataclass
class Board:
    users: UserDirectory
    tasks: TaskWorkflow
    attachments: AttachmentManager


def build_board(
    repository: TaskRepository,
    blobs: BlobStore,
    user_service: UserService,
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
    chunk_size: int = DEFAULT_CHUNK_BYTES,
) -> Board:
    """Assemble a :class:`Board` from the three external collaborators."""
    locks = TaskLockManager()
    users = UserDirectory(user_service)
    attachments = AttachmentManager(
        repository,
        blobs,
        users,
        locks,
        max_upload_bytes=max_upload_bytes,
        chunk_size=chunk_size,
    )
    tasks = TaskWorkflow(repository, users, attachments, locks)
    users.bind_workflow(tasks)
    return Board(users=users, tasks=tasks, attachments=attachments)


def board_from_settings(settings: Settings) -> Board:
    """Build a board on the storage backend named in *settings*."""
    if settings.storage == "sql":
        from taskboard.storage.database import create_db_and_tables, make_engine
        from taskboard.storage.files import FileBlobStore
        from taskboard.storage.sql import SqlTaskRepository, SqlUserService

        engine = make_engine(settings.database_url)
        create_db_and_tables(engine)
        repository = SqlTaskRepository(engine)
        user_service = SqlUserService(engine)
        blobs = FileBlobStore(settings.blob_dir)
    else:
        from taskboard.storage.memory import (
            InMemoryBlobStore,
            InMemoryTaskRepository,
            InMemoryUserService,
        )

        repository = InMemoryTaskRepository()
        user_service = InMemoryUserService()
        blobs = InMemoryBlobStore()

    logger.info("Task board using %s storage", settings.storage)
    return build_board(
        repository,
        blobs,
        user_service,
        max_upload_bytes=settings.max_upload_bytes,
        chunk_size=settings.upload_chunk_bytes,
    )
