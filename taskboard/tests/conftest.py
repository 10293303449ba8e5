import pytest

from fakes import RecordingBlobStore, RecordingTaskRepository
from taskboard.board import build_board
from taskboard.storage.memory import InMemoryUserService


@pytest.fixture(name="events")
def events_fixture():
    return []


@pytest.fixture(name="repository")
def repository_fixture(events):
    return RecordingTaskRepository(events)


@pytest.fixture(name="blobs")
def blobs_fixture(events):
    return RecordingBlobStore(events)


@pytest.fixture(name="user_service")
def user_service_fixture():
    return InMemoryUserService()


@pytest.fixture(name="board")
def board_fixture(repository, blobs, user_service):
    """A board wired to fresh in-memory collaborators."""
    return build_board(repository, blobs, user_service)


@pytest.fixture(name="admin")
def admin_fixture(board):
    return board.users.register_user(
        {"name": "Ada Admin", "email": "ada@example.com", "role": "admin"}
    )


@pytest.fixture(name="owner")
def owner_fixture(board):
    return board.users.register_user({"name": "Olga Owner", "email": "olga@example.com"})


@pytest.fixture(name="assignee")
def assignee_fixture(board):
    return board.users.register_user({"name": "Sam Assignee", "email": "sam@example.com"})


@pytest.fixture(name="stranger")
def stranger_fixture(board):
    return board.users.register_user({"name": "Stan Stranger", "email": "stan@example.com"})


@pytest.fixture(name="task")
def task_fixture(board, owner, assignee):
    """A task owned by *owner* with *assignee* assigned."""
    return board.tasks.create_task(
        owner,
        {"title": "Ship v1", "description": "Cut the release", "assigned_users": [assignee.id]},
    )
