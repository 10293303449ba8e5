"""Task workflow engine.

Every operation takes the acting user explicitly, re-reads that user's
record, checks the authorization policy and only then touches storage.
Mutations of one task are serialized through :class:`TaskLockManager`;
reads never take a lock.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Union

from taskboard.attachments import AttachmentManager
from taskboard.errors import (
    InvalidInputError,
    InvalidReferenceError,
    InvalidStateError,
    NotFoundError,
    StorageFailure,
    UnauthorizedError,
)
from taskboard.locks import TaskLockManager
from taskboard.models import (
    BOARD_ORDER,
    Task,
    TaskCreate,
    TaskStatus,
    TaskUpdate,
    utcnow,
    validate_payload,
)
from taskboard.policy import Action, can_perform, require
from taskboard.ports import TaskRepository
from taskboard.users import ActorRef, UserDirectory

logger = logging.getLogger(__name__)

MOVE_LEFT = "left"
MOVE_RIGHT = "right"


def parse_status(value: Any) -> TaskStatus:
    """Coerce a wire value to :class:`TaskStatus` or raise ``InvalidStateError``."""
    if isinstance(value, TaskStatus):
        return value
    try:
        return TaskStatus(value)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise InvalidStateError(
            f"Invalid status {value!r}; expected one of: {allowed}"
        ) from exc


def normalize_tags(tags: Iterable[str]) -> list[str]:
    """Trim tags, drop empty ones and collapse duplicates keeping first position."""
    cleaned = (tag.strip() for tag in tags)
    return list(dict.fromkeys(tag for tag in cleaned if tag))


def _parse_patch(patch: Union[TaskUpdate, Mapping[str, Any]]) -> dict[str, Any]:
    """Return only the fields present in *patch*, validated."""
    if isinstance(patch, TaskUpdate):
        return patch.model_dump(exclude_unset=True)
    data = dict(patch)
    if "status" in data:
        data["status"] = parse_status(data["status"])
    return validate_payload(TaskUpdate, data).model_dump(exclude_unset=True)


class TaskWorkflow:
    """Applies task mutations subject to the authorization policy.

    Args:
        repository: Task storage.
        users: User directory, for actor refresh and assignee validation.
        attachments: Attachment manager, for purging blobs on delete.
        locks: Per-task write lock manager shared with *attachments*.
    """

    def __init__(
        self,
        repository: TaskRepository,
        users: UserDirectory,
        attachments: AttachmentManager,
        locks: TaskLockManager,
    ) -> None:
        self._repository = repository
        self._users = users
        self._attachments = attachments
        self._locks = locks

    # -- reads ---------------------------------------------------------------

    def get_task(self, actor: ActorRef, task_id: str) -> Task:
        acting = self._users.resolve_actor(actor)
        task = self._load(task_id)
        require(acting, task, Action.view)
        return task

    def list_tasks(self, actor: ActorRef) -> list[Task]:
        """Return every task *actor* may view, oldest first."""
        acting = self._users.resolve_actor(actor)
        visible = [
            task for task in self._repository.list()
            if can_perform(acting, task, Action.view)
        ]
        return sorted(visible, key=lambda t: t.created_at)

    # -- writes --------------------------------------------------------------

    def create_task(
        self, actor: ActorRef, draft: Union[TaskCreate, Mapping[str, Any]]
    ) -> Task:
        """Create a task owned by *actor*.

        Status defaults to todo and priority to medium unless the draft
        says otherwise. Assigned user ids must all resolve.
        """
        acting = self._users.resolve_actor(actor)
        if not isinstance(draft, TaskCreate):
            draft = dict(draft)
            if "status" in draft:
                draft["status"] = parse_status(draft["status"])
        data = validate_payload(TaskCreate, draft)

        task = Task(
            title=data.title,
            description=data.description,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            tags=normalize_tags(data.tags),
            assigned_users=self._users.require_existing(data.assigned_users),
            owner_id=acting.id,
        )
        self._repository.put(task)
        try:
            # An account deletion may have started while the task was built.
            self._users.resolve_actor(acting.id)
            self._users.require_existing(task.assigned_users)
        except (UnauthorizedError, InvalidReferenceError):
            self._repository.delete(task.id)
            raise
        logger.info("Created task %s for owner %s", task.id, acting.id)
        return task

    def update_task(
        self,
        actor: ActorRef,
        task_id: str,
        patch: Union[TaskUpdate, Mapping[str, Any]],
    ) -> Task:
        """Apply a partial update; omitted fields keep their value.

        Any status may follow any other. Assigned users are deduplicated and
        must all resolve.

        Raises:
            NotFoundError: No task with *task_id*.
            UnauthorizedError: *actor* lacks edit rights.
            InvalidStateError: Status outside the three board values.
            InvalidInputError: Empty title or other malformed field.
            InvalidReferenceError: An assigned user id does not resolve.
        """
        acting = self._users.resolve_actor(actor)
        with self._locks.hold(task_id):
            task = self._load(task_id)
            require(acting, task, Action.edit)
            changes = self._validate_changes(_parse_patch(patch))
            if not changes:
                return task

            updated = task.model_copy(update={**changes, "updated_at": utcnow()})
            self._repository.put(updated)

        logger.info("Updated task %s fields=%s", task_id, sorted(changes))
        return updated

    def change_status(
        self, actor: ActorRef, task_id: str, new_status: Union[TaskStatus, str]
    ) -> Task:
        return self.update_task(actor, task_id, {"status": new_status})

    def move_task(self, actor: ActorRef, task_id: str, direction: str) -> Task:
        """Move a task one column left or right on the board."""
        if direction not in (MOVE_LEFT, MOVE_RIGHT):
            raise InvalidInputError(
                f"Invalid direction {direction!r}; expected 'left' or 'right'"
            )
        acting = self._users.resolve_actor(actor)
        with self._locks.hold(task_id):
            task = self._load(task_id)
            require(acting, task, Action.edit)
            index = BOARD_ORDER.index(task.status)
            index += -1 if direction == MOVE_LEFT else 1
            if not 0 <= index < len(BOARD_ORDER):
                raise InvalidStateError(
                    f"Task {task_id} cannot move {direction} from {task.status.value}"
                )
            return self.change_status(acting, task_id, BOARD_ORDER[index])

    def add_tag(self, actor: ActorRef, task_id: str, tag: str) -> Task:
        return self._edit_list(actor, task_id, "tags", lambda tags: [*tags, tag])

    def remove_tag(self, actor: ActorRef, task_id: str, tag: str) -> Task:
        return self._edit_list(
            actor, task_id, "tags", lambda tags: [t for t in tags if t != tag]
        )

    def assign_user(self, actor: ActorRef, task_id: str, user_id: str) -> Task:
        return self._edit_list(
            actor, task_id, "assigned_users", lambda ids: [*ids, user_id]
        )

    def unassign_user(self, actor: ActorRef, task_id: str, user_id: str) -> Task:
        return self._edit_list(
            actor,
            task_id,
            "assigned_users",
            lambda ids: [uid for uid in ids if uid != user_id],
        )

    def delete_task(self, actor: ActorRef, task_id: str) -> None:
        """Delete a task after removing every attachment blob it holds."""
        acting = self._users.resolve_actor(actor)
        with self._locks.hold(task_id):
            task = self._load(task_id)
            require(acting, task, Action.delete)
            purged = self._attachments.purge(task)
            try:
                self._repository.delete(task_id)
            except StorageFailure:
                # The blobs are gone; keep the record consistent with that.
                self._repository.put(purged.model_copy(update={"updated_at": utcnow()}))
                raise
        logger.info(
            "Deleted task %s with %d attachment(s)", task_id, len(task.attachments)
        )

    def delete_tasks_owned_by(self, actor: ActorRef, owner_id: str) -> int:
        """Delete every task owned by *owner_id*. Returns how many were removed."""
        removed = 0
        for task in self._repository.list_by_owner(owner_id):
            try:
                self.delete_task(actor, task.id)
            except NotFoundError:
                logger.debug("Task %s already gone during cascade", task.id)
                continue
            removed += 1
        return removed

    def unassign_everywhere(self, actor: ActorRef, user_id: str) -> int:
        """Drop *user_id* from the assignees of every task.

        Each task is re-read under its own write lock, so an assignment
        committed just before the lock was taken is still caught.
        Returns how many tasks changed.
        """
        acting = self._users.resolve_actor(actor)
        changed = 0
        for listed in self._repository.list():
            with self._locks.hold(listed.id):
                task = self._repository.get(listed.id)
                if task is None or user_id not in task.assigned_users:
                    continue
                require(acting, task, Action.edit)
                self._repository.put(
                    task.model_copy(
                        update={
                            "assigned_users": [
                                uid for uid in task.assigned_users if uid != user_id
                            ],
                            "updated_at": utcnow(),
                        }
                    )
                )
            changed += 1
        logger.debug("Unassigned user %s from %d task(s)", user_id, changed)
        return changed

    # -- private helpers -----------------------------------------------------

    def _load(self, task_id: str) -> Task:
        task = self._repository.get(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    def _edit_list(
        self,
        actor: ActorRef,
        task_id: str,
        field: str,
        edit: Callable[[list[str]], list[str]],
    ) -> Task:
        acting = self._users.resolve_actor(actor)
        with self._locks.hold(task_id):
            task = self._load(task_id)
            require(acting, task, Action.edit)
            return self.update_task(acting, task_id, {field: edit(getattr(task, field))})

    def _validate_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        for key in ("title", "status", "priority"):
            if key in changes and changes[key] is None:
                if key == "status":
                    raise InvalidStateError("status must not be null")
                raise InvalidInputError(f"{key} must not be null")
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"] or [])
        if "assigned_users" in changes:
            changes["assigned_users"] = self._users.require_existing(
                changes["assigned_users"] or []
            )
        return changes
