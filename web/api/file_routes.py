"""API routes for per-server uploaded files.

Rows in the files table mirror the upload tree on disk. Mutations touch disk
and database as two separate steps; deletes hit disk first and tolerate paths
that are already gone so a retry can always clean up leftover rows.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Body, Depends, File as FileParam, HTTPException, Response, UploadFile, status
from fastapi.responses import PlainTextResponse
from pydantic import Field

from panel.models import User
from panel.services import uploads
from panel.storage import storage
from web.api.utils import CamelModel, clean_updates
from web.auth import require_user

logger = logging.getLogger("minelaunch.files")

router = APIRouter(prefix="/api", tags=["files"])


# --- Pydantic schemas ---


class FileCreate(CamelModel):
    server_id: str = Field(min_length=1)
    path: str = Field(min_length=1)
    is_directory: Optional[bool] = False
    is_sticky: Optional[bool] = False
    size: Optional[int] = Field(None, ge=0)


class FileUpdate(CamelModel):
    path: Optional[str] = Field(None, min_length=1)
    is_directory: Optional[bool] = None
    is_sticky: Optional[bool] = None
    size: Optional[int] = Field(None, ge=0)


class FileRowResponse(CamelModel):
    id: int
    server_id: str
    path: str
    is_directory: Optional[bool]
    is_sticky: Optional[bool]
    size: Optional[int]
    last_modified: datetime


class FileDelete(CamelModel):
    path: str = Field(min_length=1)
    is_directory: bool = False


class DirectoryCreate(CamelModel):
    path: str = Field(min_length=1)


class FileContentSave(CamelModel):
    path: str = Field(min_length=1)
    content: str


async def _require_server(server_id: str) -> None:
    if not await storage.get_server(server_id):
        raise HTTPException(404, "Server not found")


def _directory(path: str | None) -> str:
    """Normalized path that may be empty (the server root)."""
    try:
        return uploads.normalize_path(path)
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e


def _normalized(path: str | None) -> str:
    normalized = _directory(path)
    if path and not normalized:
        raise HTTPException(400, "Path is required")
    return normalized


async def _find_exact(server_id: str, path: str):
    matches = await storage.get_files(server_id, path)
    return next((f for f in matches if f.path == path), None)


# --- Rows ---


@router.get("/servers/{server_id}/files", response_model=list[FileRowResponse])
async def list_files(server_id: str, path: Optional[str] = None):
    """List a server's files. With ?path=, only that node and everything below it."""
    return await storage.get_files(server_id, _directory(path) or None)


@router.post("/files", response_model=FileRowResponse, status_code=status.HTTP_201_CREATED)
async def create_file(body: FileCreate, user: User = Depends(require_user)):
    await _require_server(body.server_id)
    data = body.model_dump()
    data["path"] = _normalized(body.path)
    return await storage.create_file(data)


@router.patch("/files/{file_id}", response_model=FileRowResponse)
async def update_file(file_id: int, body: FileUpdate, user: User = Depends(require_user)):
    updates = clean_updates(body, {"path"})
    if "path" in updates:
        updates["path"] = _normalized(updates["path"])
    file = await storage.update_file(file_id, updates)
    if not file:
        raise HTTPException(404, "File not found")
    return file


# --- Disk-backed operations ---


@router.delete("/files/{server_id}/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_path(server_id: str, body: FileDelete = Body(...), user: User = Depends(require_user)):
    """Remove a file or directory from disk, then its row and every row nested below it."""
    path = _normalized(body.path)
    try:
        await uploads.remove(server_id, path, body.is_directory)
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e
    removed = await storage.delete_files(server_id, path)
    logger.info("Deleted %s/%s (%d rows) by %s", server_id, path, removed, user.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/files/{server_id}/content", response_class=PlainTextResponse)
async def get_file_content(server_id: str, path: str, user: User = Depends(require_user)):
    try:
        return await uploads.read_text(server_id, _normalized(path))
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e
    except FileNotFoundError as e:
        raise HTTPException(404, "File not found") from e


@router.post("/files/{server_id}/content", response_model=FileRowResponse)
async def save_file_content(server_id: str, body: FileContentSave, user: User = Depends(require_user)):
    """Overwrite a text file on disk and record its new size."""
    await _require_server(server_id)
    path = _normalized(body.path)
    existing = await _find_exact(server_id, path)
    if existing and existing.is_directory:
        raise HTTPException(400, "Path is a directory")
    try:
        size = await uploads.write_bytes(server_id, path, body.content.encode("utf-8"))
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e
    if existing:
        return await storage.update_file(existing.id, {"size": size})
    return await storage.create_file({"server_id": server_id, "path": path, "is_directory": False, "size": size})


@router.post("/files/{server_id}/upload", response_model=FileRowResponse)
async def upload_file(
    server_id: str,
    path: Optional[str] = None,
    file: UploadFile = FileParam(...),
    user: User = Depends(require_user),
):
    """Store an uploaded file under ?path= (directory) and register it."""
    await _require_server(server_id)
    name = uploads.file_name(file.filename)
    if not name:
        raise HTTPException(400, "No file uploaded")
    full_path = uploads.join_path(_directory(path), name)
    if await _find_exact(server_id, full_path):
        raise HTTPException(400, "A file with this name already exists in this directory")
    content = await file.read()
    try:
        size = await uploads.write_bytes(server_id, full_path, content)
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e
    logger.info("Uploaded %s/%s (%d bytes)", server_id, full_path, size)
    return await storage.create_file({
        "server_id": server_id,
        "path": full_path,
        "is_directory": False,
        "size": size,
    })


@router.post("/files/{server_id}/mkdir", response_model=FileRowResponse)
async def make_directory(server_id: str, body: DirectoryCreate, user: User = Depends(require_user)):
    await _require_server(server_id)
    path = _normalized(body.path)
    try:
        await uploads.ensure_dir(server_id, path)
    except uploads.UnsafePathError as e:
        raise HTTPException(400, str(e)) from e
    existing = await _find_exact(server_id, path)
    if existing:
        return existing
    return await storage.create_file({"server_id": server_id, "path": path, "is_directory": True, "size": 0})
