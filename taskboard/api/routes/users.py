"""Registration, self-service profile and admin user management endpoints."""

from fastapi import APIRouter, Depends

from taskboard.api.deps import current_actor, get_board
from taskboard.board import Board
from taskboard.errors import UnauthorizedError
from taskboard.models import User, UserCreate, UserUpdate

router = APIRouter(prefix="/api", tags=["users"])


@router.post("/users", status_code=201)
def register_user(body: UserCreate, board: Board = Depends(get_board)) -> User:
    return board.users.register_user(body)


@router.get("/users/me")
def who_am_i(actor: User = Depends(current_actor)) -> User:
    return actor


@router.put("/users/me")
def update_profile(
    body: UserUpdate,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> User:
    """Change the caller's own name or email."""
    return board.users.update_user(actor, actor.id, body)


@router.get("/admin/users")
def list_users(
    actor: User = Depends(current_actor), board: Board = Depends(get_board)
) -> list[User]:
    if not actor.is_admin:
        raise UnauthorizedError("Only an admin may list users")
    return board.users.list_users()


@router.put("/admin/users/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> User:
    return board.users.update_user(actor, user_id, body)


@router.delete("/admin/users/{user_id}")
def delete_user(
    user_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> dict:
    """Delete a user and, first, every task they own."""
    removed = board.users.delete_user(actor, user_id)
    return {"deleted": user_id, "deleted_tasks": removed}
