"""Authorization rules for task actions.

Pure functions over (actor, task, action). Nothing here is cached: callers
pass freshly loaded records on every call so role and ownership changes
take effect immediately.
"""

import logging
from enum import Enum

from taskboard.errors import UnauthorizedError
from taskboard.models import Task, User

logger = logging.getLogger(__name__)


class Action(str, Enum):
    view = "view"
    edit = "edit"
    delete = "delete"
    upload_attachment = "uploadAttachment"
    download_attachment = "downloadAttachment"
    delete_attachment = "deleteAttachment"


# Actions open to owner only (plus admin).
_OWNER_ACTIONS = frozenset({Action.edit, Action.delete, Action.delete_attachment})

# Actions open to owner and assignees (plus admin).
_PARTICIPANT_ACTIONS = frozenset(
    {Action.view, Action.upload_attachment, Action.download_attachment}
)


def can_perform(actor: User, task: Task, action: Action) -> bool:
    """Return True if *actor* may perform *action* on *task*.

    Admins may do anything. Everyone else needs to own the task for
    edit/delete/deleteAttachment, and to own it or be assigned to it for
    view/uploadAttachment/downloadAttachment. There is no public tier.
    """
    if actor.is_admin:
        return True

    is_owner = actor.id == task.owner_id
    if action in _OWNER_ACTIONS:
        return is_owner
    if action in _PARTICIPANT_ACTIONS:
        return is_owner or actor.id in task.assigned_users
    return False


def require(actor: User, task: Task, action: Action) -> None:
    """Raise ``UnauthorizedError`` unless *actor* may perform *action*."""
    if not can_perform(actor, task, action):
        logger.warning(
            "Denied %s on task %s for user %s", action.value, task.id, actor.id
        )
        raise UnauthorizedError(
            f"User {actor.id} may not {action.value} task {task.id}"
        )
