"""FastAPI application for the task board."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskboard.api.routes.attachments import router as attachments_router
from taskboard.api.routes.tasks import router as tasks_router
from taskboard.api.routes.users import router as users_router
from taskboard.board import Board, board_from_settings
from taskboard.config import Settings, load_settings
from taskboard.errors import (
    ConflictError,
    InvalidInputError,
    InvalidReferenceError,
    NotFoundError,
    PayloadTooLargeError,
    StorageFailure,
    TaskBoardError,
    UnauthorizedError,
    UploadCancelledError,
)

logger = logging.getLogger(__name__)

# Looked up along the raised exception's MRO.
ERROR_STATUS: dict[type, int] = {
    NotFoundError: 404,
    UnauthorizedError: 403,
    InvalidInputError: 422,
    InvalidReferenceError: 422,
    PayloadTooLargeError: 413,
    ConflictError: 409,
    UploadCancelledError: 499,
    StorageFailure: 503,
}


def status_for(exc: TaskBoardError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 500


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def handle_board_error(request: Request, exc: TaskBoardError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app(
    board: Optional[Board] = None, settings: Optional[Settings] = None
) -> FastAPI:
    """Build the app. Without *board*, one is built from *settings* on startup."""
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.board is None:
            app.state.board = board_from_settings(settings)
        yield

    app = FastAPI(title="Task Board", lifespan=lifespan)
    app.state.board = board

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "X-User-Id"],
    )
    app.add_exception_handler(TaskBoardError, handle_board_error)

    app.include_router(tasks_router)
    app.include_router(attachments_router)
    app.include_router(users_router)

    @app.get("/api/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "taskboard", "storage": settings.storage}

    return app


def main() -> FastAPI:
    """Entry point for ASGI servers: ``uvicorn --factory taskboard.api.main:main``.

    uvicorn ships in the ``serve`` extra.
    """
    settings = load_settings()
    configure_logging(settings.log_level)
    return create_app(settings=settings)
