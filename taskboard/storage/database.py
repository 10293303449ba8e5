"""Database engine and session helpers for the SQLModel-backed stores."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from taskboard.errors import StorageFailure

logger = logging.getLogger(__name__)


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections may be shared across threads.

    ``sqlite://`` (in-memory) gets a single shared connection so every
    session sees the same database.
    """
    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    """Create all tables from SQLModel metadata."""
    # Importing registers the table models on SQLModel.metadata.
    from taskboard.storage import sql  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Ensured tables: %s", ", ".join(sorted(SQLModel.metadata.tables)))


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """Yield a session, committing on success and mapping DB errors.

    Raises:
        StorageFailure: Any SQLAlchemy error raised inside the block.
    """
    with Session(engine) as session:
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database operation failed: %s", exc)
            raise StorageFailure(f"Database operation failed: {exc}") from exc
