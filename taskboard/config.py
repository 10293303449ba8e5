"""Environment-driven settings for the task board service."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).parent

DEFAULT_MAX_UPLOAD_BYTES = 100 * 1024 * 1024
DEFAULT_CHUNK_BYTES = 1024 * 1024
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r; using %d", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    storage: str = "memory"
    database_url: str = f"sqlite:///{PACKAGE_DIR / 'data.db'}"
    blob_dir: Path = PACKAGE_DIR / "blobs"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    upload_chunk_bytes: int = DEFAULT_CHUNK_BYTES
    cors_origins: list[str] = field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build :class:`Settings` from ``TASKBOARD_*`` and related env vars."""
    defaults = Settings()
    storage = os.getenv("TASKBOARD_STORAGE", defaults.storage).strip().lower()
    if storage not in ("memory", "sql"):
        logger.warning("Unknown TASKBOARD_STORAGE=%r; using memory", storage)
        storage = "memory"

    return Settings(
        storage=storage,
        database_url=os.getenv("TASKBOARD_DATABASE_URL", defaults.database_url),
        blob_dir=Path(os.getenv("TASKBOARD_BLOB_DIR", str(defaults.blob_dir))),
        max_upload_bytes=_int_env("TASKBOARD_MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        upload_chunk_bytes=_int_env("TASKBOARD_UPLOAD_CHUNK_BYTES", DEFAULT_CHUNK_BYTES),
        cors_origins=[
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
            if origin.strip()
        ],
        log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
    )
