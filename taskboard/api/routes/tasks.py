"""Task endpoints: CRUD, status moves and filtered listing."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from taskboard.api.deps import current_actor, get_board
from taskboard.board import Board
from taskboard.filters import FilterCriteria, apply_filters, collect_tags, group_by_status
from taskboard.models import Task, TaskCreate, TaskUpdate, User, validate_payload

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


class StatusChange(BaseModel):
    # Plain str so the workflow reports bad values itself.
    status: str


class MoveRequest(BaseModel):
    direction: str


@router.get("/")
def list_tasks(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> list[Task]:
    """List visible tasks, optionally filtered."""
    criteria = validate_payload(
        FilterCriteria,
        {"status": status, "priority": priority, "tag": tag, "search": search},
    )
    return apply_filters(board.tasks.list_tasks(actor), criteria)


@router.get("/tags")
def list_tags(
    actor: User = Depends(current_actor), board: Board = Depends(get_board)
) -> list[str]:
    """Distinct tags across the tasks the caller can see."""
    return collect_tags(board.tasks.list_tasks(actor))


@router.get("/board")
def board_columns(
    actor: User = Depends(current_actor), board: Board = Depends(get_board)
) -> dict[str, list[Task]]:
    """Visible tasks grouped into todo / in_progress / done columns."""
    columns = group_by_status(board.tasks.list_tasks(actor))
    return {status.value: tasks for status, tasks in columns.items()}


@router.get("/{task_id}")
def get_task(
    task_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Task:
    return board.tasks.get_task(actor, task_id)


@router.post("/", status_code=201)
def create_task(
    body: TaskCreate,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Task:
    return board.tasks.create_task(actor, body)


@router.put("/{task_id}")
def update_task(
    task_id: str,
    body: TaskUpdate,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Task:
    """Update an existing task. Only provided fields are changed."""
    return board.tasks.update_task(actor, task_id, body)


@router.post("/{task_id}/status")
def change_status(
    task_id: str,
    body: StatusChange,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Task:
    return board.tasks.change_status(actor, task_id, body.status)


@router.post("/{task_id}/move")
def move_task(
    task_id: str,
    body: MoveRequest,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Task:
    return board.tasks.move_task(actor, task_id, body.direction)


@router.delete("/{task_id}", status_code=204)
def delete_task(
    task_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> None:
    """Delete a task and all of its attachments."""
    board.tasks.delete_task(actor, task_id)
