"""Attachment endpoints nested under a task."""

import os
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import StreamingResponse

from taskboard.api.deps import current_actor, get_board
from taskboard.board import Board
from taskboard.models import Attachment, User

router = APIRouter(prefix="/api/tasks/{task_id}/attachments", tags=["attachments"])


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


@router.get("/")
def list_attachments(
    task_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> list[Attachment]:
    return board.attachments.list_attachments(actor, task_id)


@router.post("/", status_code=201)
def upload_attachment(
    task_id: str,
    file: UploadFile = File(...),
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> Attachment:
    """Upload a file (max 100 MiB by default) to a task."""
    return board.attachments.upload_attachment(
        actor,
        task_id,
        file.filename or "",
        _upload_size(file),
        file.file,
    )


@router.get("/{attachment_id}")
def download_attachment(
    task_id: str,
    attachment_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> StreamingResponse:
    download = board.attachments.download_attachment(actor, task_id, attachment_id)
    return StreamingResponse(
        download.chunks,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(download.file_name)}",
            "Content-Length": str(download.byte_size),
        },
    )


@router.delete("/{attachment_id}", status_code=204)
def delete_attachment(
    task_id: str,
    attachment_id: str,
    actor: User = Depends(current_actor),
    board: Board = Depends(get_board),
) -> None:
    board.attachments.delete_attachment(actor, task_id, attachment_id)
