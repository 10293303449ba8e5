"""Tests for the SQLModel and filesystem collaborators."""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

from taskboard.board import build_board
from taskboard.errors import NotFoundError, StorageFailure
from taskboard.models import Attachment, Role, Task, TaskStatus, User
from taskboard.storage.database import create_db_and_tables, make_engine
from taskboard.storage.files import FileBlobStore
from taskboard.storage.sql import SqlTaskRepository, SqlUserService


@pytest.fixture(name="engine")
def engine_fixture():
    """Create a fresh in-memory database for each test."""
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


class TestSqlTaskRepository:
    def test_put_and_get_round_trip(self, engine):
        repo = SqlTaskRepository(engine)
        task = Task(
            title="Persist me",
            description="with everything",
            status=TaskStatus.in_progress,
            due_date=date(2026, 5, 1),
            owner_id="u1",
            tags=["a", "b"],
            assigned_users=["u2"],
            attachments=[
                Attachment(file_name="f.txt", byte_size=3, content_ref="abc", uploaded_by="u1")
            ],
        )
        repo.put(task)
        assert repo.get(task.id) == task

    def test_put_overwrites(self, engine):
        repo = SqlTaskRepository(engine)
        task = Task(title="v1", owner_id="u1")
        repo.put(task)
        repo.put(task.model_copy(update={"title": "v2", "tags": ["x"]}))
        loaded = repo.get(task.id)
        assert loaded.title == "v2"
        assert loaded.tags == ["x"]
        assert len(repo.list()) == 1

    def test_get_missing(self, engine):
        assert SqlTaskRepository(engine).get("missing") is None

    def test_list_by_owner_and_delete(self, engine):
        repo = SqlTaskRepository(engine)
        base = datetime(2026, 1, 1, tzinfo=timezone.utc)
        mine = [
            Task(title=f"t{i}", owner_id="u1", created_at=base + timedelta(minutes=i))
            for i in range(3)
        ]
        theirs = Task(title="other", owner_id="u2")
        for task in [*mine, theirs]:
            repo.put(task)

        assert [t.id for t in repo.list_by_owner("u1")] == [t.id for t in mine]
        repo.delete(mine[0].id)
        repo.delete("missing")
        assert {t.id for t in repo.list()} == {mine[1].id, mine[2].id, theirs.id}

    def test_database_errors_become_storage_failures(self, engine):
        repo = SqlTaskRepository(engine)
        with patch(
            "sqlmodel.Session.get",
            side_effect=OperationalError("SELECT", {}, Exception("disk I/O error")),
        ):
            with pytest.raises(StorageFailure):
                repo.get("any")


class TestSqlUserService:
    def test_round_trip(self, engine):
        service = SqlUserService(engine)
        user = User(name="Ada", email="ada@example.com", role=Role.admin)
        service.put(user)
        assert service.get(user.id) == user
        assert service.list() == [user]
        service.delete(user.id)
        assert service.get(user.id) is None


class TestSqlBackedBoard:
    def test_end_to_end_cascade(self, engine, tmp_path):
        board = build_board(
            SqlTaskRepository(engine), FileBlobStore(tmp_path), SqlUserService(engine)
        )
        admin = board.users.register_user(
            {"name": "Admin", "email": "admin@example.com", "role": "admin"}
        )
        owner = board.users.register_user({"name": "Owner", "email": "owner@example.com"})
        task = board.tasks.create_task(owner, {"title": "Ship v1", "tags": ["release"]})
        attachment = board.attachments.upload_attachment(owner, task.id, "a.txt", 5, b"hello")
        assert b"".join(
            board.attachments.download_attachment(admin, task.id, attachment.id).chunks
        ) == b"hello"

        assert board.users.delete_user(admin, owner.id) == 1
        assert board.tasks.list_tasks(admin) == []
        assert list(tmp_path.iterdir()) == []


class TestFileBlobStore:
    def test_store_fetch_remove(self, tmp_path):
        store = FileBlobStore(tmp_path / "blobs")
        ref = store.store([b"hello ", b"world"])
        assert b"".join(store.fetch(ref)) == b"hello world"
        store.remove(ref)
        with pytest.raises(NotFoundError):
            store.fetch(ref)
        store.remove(ref)

    def test_failed_stream_leaves_nothing(self, tmp_path):
        store = FileBlobStore(tmp_path)

        def chunks():
            yield b"partial"
            raise ValueError("client went away")

        with pytest.raises(ValueError):
            store.store(chunks())
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize("ref", ["", "../etc/passwd", "ABC"])
    def test_rejects_foreign_refs(self, tmp_path, ref):
        store = FileBlobStore(tmp_path)
        with pytest.raises(NotFoundError):
            store.fetch(ref)
