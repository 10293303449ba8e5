"""User, task and attachment models for the task board."""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, TypeVar, Union

from pydantic import ValidationError, field_validator
from sqlmodel import Field, SQLModel

from taskboard.errors import InvalidInputError

SchemaT = TypeVar("SchemaT", bound=SQLModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def validate_payload(
    schema: type[SchemaT], payload: Union[SchemaT, Mapping[str, Any]]
) -> SchemaT:
    """Coerce *payload* into *schema*, raising ``InvalidInputError`` on failure.

    Already-built schema instances pass through untouched so that their
    ``model_fields_set`` (used for partial updates) is preserved.
    """
    if isinstance(payload, schema):
        return payload
    try:
        return schema.model_validate(dict(payload))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidInputError(problems) from exc


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    done = "done"


# Column order on the board, left to right.
BOARD_ORDER: tuple[TaskStatus, ...] = (
    TaskStatus.todo,
    TaskStatus.in_progress,
    TaskStatus.done,
)


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Role(str, Enum):
    user = "user"
    admin = "admin"


def _require_text(value: Optional[str], field_name: str) -> Optional[str]:
    if value is None:
        return value
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must not be empty")
    return stripped


# -- users -------------------------------------------------------------------


class UserBase(SQLModel):
    name: str = Field(max_length=200)
    email: str = Field(max_length=320)
    role: Role = Field(default=Role.user)


class User(UserBase):
    """A registered account. ``id`` and ``created_at`` never change."""
    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin


class UserCreate(UserBase):
    """Schema for registering a user."""

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _require_text(v, "name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = _require_text(v, "email")
        if "@" not in v:
            raise ValueError("email must contain '@'")
        return v


class UserUpdate(SQLModel):
    """Schema for updating a user. All fields optional."""
    name: Optional[str] = Field(default=None, max_length=200)
    email: Optional[str] = Field(default=None, max_length=320)
    role: Optional[Role] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v, "name")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        v = _require_text(v, "email")
        if v is not None and "@" not in v:
            raise ValueError("email must contain '@'")
        return v


# -- tasks -------------------------------------------------------------------


class Attachment(SQLModel):
    """A file stored against a task. Immutable once created."""
    id: str = Field(default_factory=new_id)
    file_name: str
    byte_size: int = Field(ge=0)
    content_ref: str
    uploaded_at: datetime = Field(default_factory=utcnow)
    uploaded_by: str


class TaskBase(SQLModel):
    """Shared fields for create/update operations."""
    title: str = Field(max_length=200)
    description: Optional[str] = Field(default=None)
    status: TaskStatus = Field(default=TaskStatus.todo)
    priority: TaskPriority = Field(default=TaskPriority.medium)
    due_date: Optional[date] = Field(default=None)


class Task(TaskBase):
    """A task on the board.

    ``tags`` and ``assigned_users`` are insertion-ordered and duplicate-free.
    ``owner_id`` is the creator and never changes.
    """
    id: str = Field(default_factory=new_id)
    owner_id: str
    tags: list[str] = Field(default_factory=list)
    assigned_users: list[str] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def find_attachment(self, attachment_id: str) -> Optional[Attachment]:
        for attachment in self.attachments:
            if attachment.id == attachment_id:
                return attachment
        return None


class TaskCreate(TaskBase):
    """Schema for creating a task. Title is required, rest have defaults."""
    tags: list[str] = Field(default_factory=list)
    assigned_users: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_text(v, "title")


class TaskUpdate(SQLModel):
    """Schema for updating a task. All fields optional."""
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    tags: Optional[list[str]] = None
    assigned_users: Optional[list[str]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v, "title")
