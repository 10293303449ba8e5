"""User directory: forwarding layer over the external user service.

Adds the few rules the board needs on top of plain storage: unique
emails, admin-only role changes, and the ordered cascade when an account
is removed (attachments, then tasks, then assignments, then the user
record).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Union

from taskboard.errors import (
    ConflictError,
    InvalidReferenceError,
    NotFoundError,
    UnauthorizedError,
)
from taskboard.models import User, UserCreate, UserUpdate, validate_payload
from taskboard.ports import UserService

if TYPE_CHECKING:
    from taskboard.workflow import TaskWorkflow

logger = logging.getLogger(__name__)

ActorRef = Union[User, str]


class UserDirectory:
    """Thin adapter over a :class:`~taskboard.ports.UserService`.

    Args:
        service: The external user store.
    """

    def __init__(self, service: UserService) -> None:
        self._service = service
        self._workflow: TaskWorkflow | None = None
        # Ids whose account removal is in progress; treated as already gone.
        self._retiring: set[str] = set()
        self._retiring_lock = threading.Lock()

    def bind_workflow(self, workflow: TaskWorkflow) -> None:
        """Attach the workflow engine used for cascade deletes."""
        self._workflow = workflow

    # -- reads ---------------------------------------------------------------

    def list_users(self) -> list[User]:
        return self._service.list()

    def get_user(self, user_id: str) -> User:
        user = self._service.get(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def resolve_actor(self, actor: ActorRef) -> User:
        """Return the current record for *actor*.

        The stored record wins over whatever the caller passed in, so a
        role change applies from the next call. A vanished account, or one
        being deleted, is denied.
        """
        actor_id = actor if isinstance(actor, str) else actor.id
        current = None if self._is_retiring(actor_id) else self._service.get(actor_id)
        if current is None:
            raise UnauthorizedError(f"Unknown actor {actor_id}")
        return current

    def require_existing(self, user_ids: Iterable[str]) -> list[str]:
        """Deduplicate *user_ids* and check every id resolves.

        Returns:
            The ids in first-seen order with duplicates removed.

        Raises:
            InvalidReferenceError: If any id has no user behind it.
        """
        unique = list(dict.fromkeys(user_ids))
        missing = [
            uid for uid in unique
            if self._is_retiring(uid) or self._service.get(uid) is None
        ]
        if missing:
            raise InvalidReferenceError(
                f"Unknown user ids: {', '.join(missing)}"
            )
        return unique

    # -- writes --------------------------------------------------------------

    def register_user(self, draft: Union[UserCreate, Mapping[str, Any]]) -> User:
        """Create a new account. The first user gets no special treatment."""
        data = validate_payload(UserCreate, draft)
        self._ensure_email_free(data.email)
        user = User(name=data.name, email=data.email, role=data.role)
        self._service.put(user)
        logger.info("Registered user %s (%s)", user.id, user.role.value)
        return user

    def update_user(
        self,
        actor: ActorRef,
        user_id: str,
        patch: Union[UserUpdate, Mapping[str, Any]],
    ) -> User:
        """Apply a partial profile update.

        Admins may change anything on anyone. Other users may change their
        own name and email only.
        """
        acting = self.resolve_actor(actor)
        changes = validate_payload(UserUpdate, patch).model_dump(exclude_unset=True)
        target = self.get_user(user_id)

        if not acting.is_admin:
            if acting.id != target.id:
                raise UnauthorizedError(f"User {acting.id} may not edit user {user_id}")
            if "role" in changes:
                raise UnauthorizedError("Only an admin may change roles")

        for key in ("name", "email", "role"):
            if key in changes and changes[key] is None:
                del changes[key]

        if "email" in changes:
            self._ensure_email_free(changes["email"], exclude_id=target.id)

        updated = target.model_copy(update=changes)
        self._service.put(updated)
        logger.info("Updated user %s fields=%s", user_id, sorted(changes))
        return updated

    def delete_user(self, actor: ActorRef, user_id: str) -> int:
        """Remove an account together with every task it owns.

        Order: each owned task (and its attachments and blobs) first, then
        the user's id is dropped from every task it is assigned to, then
        the user record goes, so no task outlives its owner or names a
        missing assignee.

        From the start of the cascade the account counts as gone: it can
        no longer act, and it can no longer be assigned.

        Returns:
            The number of tasks removed by the cascade.

        Raises:
            UnauthorizedError: If *actor* is not an admin, or is deleting
                their own account.
            ConflictError: If another deletion of *user_id* is in progress.
        """
        acting = self.resolve_actor(actor)
        if not acting.is_admin:
            raise UnauthorizedError("Only an admin may delete users")
        if acting.id == user_id:
            raise UnauthorizedError("An admin may not delete their own account")
        self.get_user(user_id)

        if self._workflow is None:
            raise RuntimeError("UserDirectory has no workflow bound for cascade deletes")

        with self._retiring_lock:
            if user_id in self._retiring:
                raise ConflictError(f"User {user_id} is already being deleted")
            self._retiring.add(user_id)
        try:
            removed = self._workflow.delete_tasks_owned_by(acting, user_id)
            unassigned = self._workflow.unassign_everywhere(acting, user_id)
            self._service.delete(user_id)
        finally:
            with self._retiring_lock:
                self._retiring.discard(user_id)
        logger.info(
            "Deleted user %s, %d owned task(s), unassigned from %d",
            user_id,
            removed,
            unassigned,
        )
        return removed

    # -- private helpers -----------------------------------------------------

    def _is_retiring(self, user_id: str) -> bool:
        with self._retiring_lock:
            return user_id in self._retiring

    def _ensure_email_free(self, email: str, exclude_id: str | None = None) -> None:
        wanted = email.casefold()
        for user in self._service.list():
            if user.id != exclude_id and user.email.casefold() == wanted:
                raise ConflictError(f"Email {email} is already registered")
