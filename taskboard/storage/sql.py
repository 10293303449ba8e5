"""SQLModel table rows and the repository/user-service adapters over them.

Tags, assignees and attachment records live in JSON columns on the task
row, so a task and its attachment list are always written together.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, JSON
from sqlalchemy.engine import Engine
from sqlmodel import Field, SQLModel, select

from taskboard.models import (
    Attachment,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)
from taskboard.storage.database import session_scope


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TaskRow(SQLModel, table=True):
    """Task database table."""
    __tablename__ = "task"

    id: str = Field(primary_key=True)
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.todo)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    due_date: Optional[date] = Field(default=None)
    owner_id: str = Field(index=True)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    assigned_users: list[str] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    attachments: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON, nullable=False)
    )
    created_at: datetime = Field(index=True)
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskRow":
        return cls(
            **task.model_dump(exclude={"attachments"}),
            attachments=[a.model_dump(mode="json") for a in task.attachments],
        )

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            description=self.description,
            status=self.status,
            priority=self.priority,
            due_date=self.due_date,
            owner_id=self.owner_id,
            tags=list(self.tags),
            assigned_users=list(self.assigned_users),
            attachments=[Attachment.model_validate(a) for a in self.attachments],
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
        )


class UserRow(SQLModel, table=True):
    """User database table."""
    __tablename__ = "user"

    id: str = Field(primary_key=True)
    name: str = Field(max_length=200)
    email: str = Field(max_length=320, index=True)
    role: Role = Field(default=Role.user)
    created_at: datetime

    def to_user(self) -> User:
        return User(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            created_at=_as_utc(self.created_at),
        )


class SqlTaskRepository:
    """Task repository over any SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, task_id: str) -> Optional[Task]:
        with session_scope(self._engine) as session:
            row = session.get(TaskRow, task_id)
            return row.to_task() if row is not None else None

    def put(self, task: Task) -> None:
        with session_scope(self._engine) as session:
            session.merge(TaskRow.from_task(task))

    def delete(self, task_id: str) -> None:
        with session_scope(self._engine) as session:
            row = session.get(TaskRow, task_id)
            if row is not None:
                session.delete(row)

    def list_by_owner(self, owner_id: str) -> list[Task]:
        statement = (
            select(TaskRow)
            .where(TaskRow.owner_id == owner_id)
            .order_by(TaskRow.created_at)
        )
        with session_scope(self._engine) as session:
            return [row.to_task() for row in session.exec(statement).all()]

    def list(self) -> list[Task]:
        statement = select(TaskRow).order_by(TaskRow.created_at)
        with session_scope(self._engine) as session:
            return [row.to_task() for row in session.exec(statement).all()]


class SqlUserService:
    """User service over any SQLAlchemy engine."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def get(self, user_id: str) -> Optional[User]:
        with session_scope(self._engine) as session:
            row = session.get(UserRow, user_id)
            return row.to_user() if row is not None else None

    def list(self) -> list[User]:
        statement = select(UserRow).order_by(UserRow.created_at)
        with session_scope(self._engine) as session:
            return [row.to_user() for row in session.exec(statement).all()]

    def put(self, user: User) -> None:
        with session_scope(self._engine) as session:
            session.merge(UserRow(**user.model_dump()))

    def delete(self, user_id: str) -> None:
        with session_scope(self._engine) as session:
            row = session.get(UserRow, user_id)
            if row is not None:
                session.delete(row)
