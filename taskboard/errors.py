"""Error taxonomy for the task board core.

Domain-rule violations are raised before any mutation is attempted.
``StorageFailure`` is raised by collaborators and passed through unchanged.
"""


class TaskBoardError(Exception):
    pass


class NotFoundError(TaskBoardError):
    """A task, attachment, user or blob id does not resolve."""


class UnauthorizedError(TaskBoardError):
    """The actor lacks permission for the requested action."""


class InvalidInputError(TaskBoardError):
    """Empty title, malformed enum value, or otherwise invalid payload."""


class InvalidStateError(InvalidInputError):
    """A status value outside todo / in_progress / done."""


class InvalidReferenceError(TaskBoardError):
    """An assigned user id does not resolve to an existing user."""


class PayloadTooLargeError(TaskBoardError):
    """An upload is bigger than the size limit or than its declared size."""


class ConflictError(TaskBoardError):
    """A uniqueness rule (e.g. user email) would be broken."""


class UploadCancelledError(TaskBoardError):
    """The caller cancelled an upload before its record was created."""


class StorageFailure(TaskBoardError):
    """A repository or blob store collaborator failed."""
