"""API routes for server instances and their mods."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import Field, field_validator

from panel.models import User
from panel.services import uploads
from panel.storage import storage
from web.api.utils import CamelModel, clean_updates
from web.auth import require_user

logger = logging.getLogger("minelaunch.api")

router = APIRouter(prefix="/api", tags=["servers"])


# --- Pydantic schemas ---

SERVER_ID_PATTERN = r"^[A-Za-z0-9._-]+$"


def _valid_server_id(value: Optional[str]) -> Optional[str]:
    # "." and ".." would name UPLOADS_DIR or its parent instead of a server directory
    if value is not None and set(value) == {"."}:
        raise ValueError("Server ID cannot consist only of dots")
    return value


class ServerCreate(CamelModel):
    server_id: str = Field(min_length=1, max_length=128, pattern=SERVER_ID_PATTERN)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    version: str = Field(min_length=1)
    address: Optional[str] = None
    minecraft_version: str = Field(min_length=1)
    loader_type: Literal["Fabric", "Forge"]
    loader_version: str = Field(min_length=1)
    main_server: Optional[bool] = False
    autoconnect: Optional[bool] = False

    @field_validator("server_id")
    @classmethod
    def check_server_id(cls, value):
        return _valid_server_id(value)


class ServerUpdate(CamelModel):
    server_id: Optional[str] = Field(None, min_length=1, max_length=128, pattern=SERVER_ID_PATTERN)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    version: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    minecraft_version: Optional[str] = Field(None, min_length=1)
    loader_type: Optional[Literal["Fabric", "Forge"]] = None
    loader_version: Optional[str] = Field(None, min_length=1)
    main_server: Optional[bool] = None
    autoconnect: Optional[bool] = None

    @field_validator("server_id")
    @classmethod
    def check_server_id(cls, value):
        return _valid_server_id(value)


class ServerResponse(CamelModel):
    id: int
    server_id: str
    name: str
    description: Optional[str]
    icon: Optional[str]
    version: str
    address: Optional[str]
    minecraft_version: str
    loader_type: str
    loader_version: str
    main_server: Optional[bool]
    autoconnect: Optional[bool]
    created_at: datetime
    updated_at: datetime


class ModCreate(CamelModel):
    server_id: str = Field(min_length=1)
    mod_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    version: Optional[str] = None
    required: Optional[bool] = True
    enabled: Optional[bool] = True
    optional_default: Optional[bool] = False
    size: Optional[int] = Field(None, ge=0)
    url: str
    md5: Optional[str] = None


class ModUpdate(CamelModel):
    server_id: Optional[str] = Field(None, min_length=1)
    mod_id: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1)
    version: Optional[str] = None
    required: Optional[bool] = None
    enabled: Optional[bool] = None
    optional_default: Optional[bool] = None
    size: Optional[int] = Field(None, ge=0)
    url: Optional[str] = None
    md5: Optional[str] = None


class ModResponse(CamelModel):
    id: int
    server_id: str
    mod_id: str
    name: str
    type: str
    version: Optional[str]
    required: Optional[bool]
    enabled: Optional[bool]
    optional_default: Optional[bool]
    size: Optional[int]
    url: str
    md5: Optional[str]
    created_at: datetime
    updated_at: datetime


_SERVER_NOT_NULL = {"server_id", "name", "version", "minecraft_version", "loader_type", "loader_version"}
_MOD_NOT_NULL = {"server_id", "mod_id", "name", "type", "url"}


async def _get_server_or_404(server_id: str):
    server = await storage.get_server(server_id)
    if not server:
        raise HTTPException(404, "Server not found")
    return server


# --- Servers ---


@router.get("/servers", response_model=list[ServerResponse])
async def list_servers():
    """List all servers ordered by name."""
    return await storage.get_servers()


@router.get("/servers/{server_id}", response_model=ServerResponse)
async def get_server(server_id: str):
    return await _get_server_or_404(server_id)


@router.post("/servers", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def create_server(body: ServerCreate, user: User = Depends(require_user)):
    """Create a server. The Fabric loader libraries are attached automatically."""
    if await storage.get_server(body.server_id):
        raise HTTPException(400, "Server ID already exists")
    server = await storage.create_server(body.model_dump())
    logger.info("Server %s created by %s", server.server_id, user.username)
    return server


@router.patch("/servers/{server_id}", response_model=ServerResponse)
async def update_server(server_id: str, body: ServerUpdate, user: User = Depends(require_user)):
    updates = clean_updates(body, _SERVER_NOT_NULL)
    new_id = updates.get("server_id")
    if new_id and new_id != server_id and await storage.get_server(new_id):
        raise HTTPException(400, "Server ID already exists")
    server = await storage.update_server(server_id, updates)
    if not server:
        raise HTTPException(404, "Server not found")
    if new_id and new_id != server_id:
        await uploads.rename_server_tree(server_id, new_id)
    return server


@router.delete("/servers/{server_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_server(server_id: str, user: User = Depends(require_user)):
    """Delete a server with its mods, files and stats, then drop its upload directory."""
    if not await storage.delete_server(server_id):
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    try:
        await uploads.remove_server_tree(server_id)
    except uploads.UnsafePathError:
        logger.warning("Server %s has no valid upload directory to remove", server_id)
    logger.info("Server %s deleted by %s", server_id, user.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Mods ---


@router.get("/servers/{server_id}/mods", response_model=list[ModResponse])
async def list_mods(server_id: str):
    return await storage.get_mods(server_id)


@router.get("/mods/{mod_id}", response_model=ModResponse)
async def get_mod(mod_id: int):
    mod = await storage.get_mod(mod_id)
    if not mod:
        raise HTTPException(404, "Mod not found")
    return mod


@router.post("/mods", response_model=ModResponse, status_code=status.HTTP_201_CREATED)
async def create_mod(body: ModCreate, user: User = Depends(require_user)):
    await _get_server_or_404(body.server_id)
    return await storage.create_mod(body.model_dump())


@router.patch("/mods/{mod_id}", response_model=ModResponse)
async def update_mod(mod_id: int, body: ModUpdate, user: User = Depends(require_user)):
    updates = clean_updates(body, _MOD_NOT_NULL)
    if "server_id" in updates:
        await _get_server_or_404(updates["server_id"])
    mod = await storage.update_mod(mod_id, updates)
    if not mod:
        raise HTTPException(404, "Mod not found")
    return mod


@router.delete("/mods/{mod_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_mod(mod_id: int, user: User = Depends(require_user)):
    await storage.delete_mod(mod_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
