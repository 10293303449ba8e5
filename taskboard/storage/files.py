"""Filesystem blob store: one file per payload under a root directory."""

import logging
import os
import uuid
from pathlib import Path
from typing import Iterable, Iterator

from taskboard.errors import NotFoundError, StorageFailure

logger = logging.getLogger(__name__)

_READ_CHUNK = 1024 * 1024


class FileBlobStore:
    """Writes each payload to ``<root>/<ref>``.

    Bytes are streamed to a ``.part`` file which is renamed into place once
    the stream is exhausted, so a failed or cancelled upload never leaves a
    readable blob behind.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Cannot create blob directory {self._root}: {exc}") from exc

    def _path(self, ref: str) -> Path:
        # Refs are lowercase hex; nothing else names a stored blob.
        if not ref or not all(c in "0123456789abcdef" for c in ref):
            raise NotFoundError(f"Blob {ref} not found")
        return self._root / ref

    def store(self, chunks: Iterable[bytes]) -> str:
        ref = uuid.uuid4().hex
        final_path = self._root / ref
        part_path = self._root / f"{ref}.part"
        try:
            with part_path.open("wb") as fh:
                for chunk in chunks:
                    fh.write(chunk)
            os.replace(part_path, final_path)
        except OSError as exc:
            part_path.unlink(missing_ok=True)
            raise StorageFailure(f"Failed to store blob: {exc}") from exc
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise
        logger.debug("Stored blob %s", ref)
        return ref

    def fetch(self, ref: str) -> Iterator[bytes]:
        path = self._path(ref)
        try:
            fh = path.open("rb")
        except FileNotFoundError as exc:
            raise NotFoundError(f"Blob {ref} not found") from exc
        except OSError as exc:
            raise StorageFailure(f"Failed to open blob {ref}: {exc}") from exc
        return self._stream(fh)

    @staticmethod
    def _stream(fh) -> Iterator[bytes]:
        with fh:
            while True:
                chunk = fh.read(_READ_CHUNK)
                if not chunk:
                    return
                yield chunk

    def remove(self, ref: str) -> None:
        try:
            path = self._path(ref)
        except NotFoundError:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Failed to remove blob {ref}: {exc}") from exc
        logger.debug("Removed blob %s", ref)
