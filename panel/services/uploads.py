"""On-disk upload tree: UPLOADS_DIR/<server_id>/<relative path>."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path, PurePosixPath

import aiofiles
import aiofiles.os

import config

logger = logging.getLogger("minelaunch.files")

_rmtree = aiofiles.os.wrap(shutil.rmtree)


class UnsafePathError(ValueError):
    """Raised when a requested path would resolve outside its server's upload directory."""


def normalize_path(path: str | None) -> str:
    """Normalize a client path to the stored form: relative, '/'-separated, no empty or '.' segments.

    '..' segments are refused so every node has exactly one stored spelling.
    """
    if not path:
        return ""
    parts = [p for p in path.replace("\\", "/").split("/") if p and p != "."]
    if ".." in parts:
        raise UnsafePathError(f"Parent directory segments are not allowed: {path}")
    return "/".join(parts)


def file_name(filename: str | None) -> str:
    """Last segment of a client-supplied file name, or '' when nothing usable is left."""
    name = basename((filename or "").replace("\\", "/"))
    return "" if name in ("", ".", "..") else name


def join_path(directory: str | None, name: str) -> str:
    directory = normalize_path(directory)
    return f"{directory}/{name}" if directory else name


def basename(path: str) -> str:
    return PurePosixPath(path).name


def server_root(server_id: str) -> Path:
    return Path(config.UPLOADS_DIR) / server_id


def is_safe_path(base_path: Path, requested_path: Path) -> bool:
    """Check if requested path is within base path (prevent path traversal)."""
    try:
        requested_path.resolve().relative_to(base_path.resolve())
        return True
    except ValueError:
        return False


def resolve(server_id: str, path: str | None) -> Path:
    """Absolute on-disk location for a server-relative path."""
    base = Path(config.UPLOADS_DIR)
    root = server_root(server_id)
    # Each server owns exactly one directory directly below UPLOADS_DIR
    if not is_safe_path(base, root) or root.resolve().parent != base.resolve():
        raise UnsafePathError(f"Invalid server id: {server_id}")
    target = root / normalize_path(path)
    if not is_safe_path(root, target):
        raise UnsafePathError(f"Path escapes upload directory: {path}")
    return target


async def ensure_dir(server_id: str, path: str | None) -> Path:
    target = resolve(server_id, path)
    await aiofiles.os.makedirs(target, exist_ok=True)
    return target


async def write_bytes(server_id: str, path: str, content: bytes) -> int:
    """Write a file, creating parent directories. Returns the byte count."""
    target = resolve(server_id, path)
    await aiofiles.os.makedirs(target.parent, exist_ok=True)
    async with aiofiles.open(target, "wb") as out_file:
        await out_file.write(content)
    return len(content)


async def read_text(server_id: str, path: str) -> str:
    target = resolve(server_id, path)
    if not await aiofiles.os.path.isfile(target):
        raise FileNotFoundError(path)
    async with aiofiles.open(target, mode="r", encoding="utf-8", errors="replace") as f:
        return await f.read()


async def remove(server_id: str, path: str, is_directory: bool) -> bool:
    """Remove a file or directory tree. Returns False when nothing existed on disk."""
    target = resolve(server_id, path)
    if target == server_root(server_id):
        raise UnsafePathError("Refusing to remove the server root")
    if not await aiofiles.os.path.exists(target):
        logger.warning("Upload %s/%s already missing on disk", server_id, path)
        return False
    if is_directory or await aiofiles.os.path.isdir(target):
        await _rmtree(target)
    else:
        await aiofiles.os.remove(target)
    return True


async def remove_server_tree(server_id: str) -> None:
    root = resolve(server_id, "")
    if await aiofiles.os.path.isdir(root):
        await _rmtree(root)


async def save_logo(filename: str, content: bytes) -> str:
    """Store a site logo directly under UPLOADS_DIR and return its public URL."""
    name = file_name(filename)
    if not name:
        raise UnsafePathError("Missing logo file name")
    base = Path(config.UPLOADS_DIR)
    await aiofiles.os.makedirs(base, exist_ok=True)
    async with aiofiles.open(base / name, "wb") as out_file:
        await out_file.write(content)
    return f"/uploads/{name}"


async def rename_server_tree(old_server_id: str, new_server_id: str) -> None:
    """Follow a server id change on disk so stored paths keep resolving."""
    old_root = resolve(old_server_id, "")
    new_root = resolve(new_server_id, "")
    if await aiofiles.os.path.isdir(old_root) and not await aiofiles.os.path.exists(new_root):
        await aiofiles.os.rename(old_root, new_root)
