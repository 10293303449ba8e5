"""FastAPI dependencies: the wired board and the acting user."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from taskboard.board import Board
from taskboard.errors import NotFoundError
from taskboard.models import User


def get_board(request: Request) -> Board:
    """Return the board attached to the running app."""
    return request.app.state.board


def current_actor(
    x_user_id: Optional[str] = Header(default=None),
    board: Board = Depends(get_board),
) -> User:
    """Resolve the ``X-User-Id`` header to a user, or fail with 401."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        return board.users.get_user(x_user_id)
    except NotFoundError:
        raise HTTPException(status_code=401, detail="Unknown user")
