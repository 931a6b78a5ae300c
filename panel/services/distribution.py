"""Launcher distribution manifest (distribution.json).

Field names and nesting are consumed verbatim by the launcher client and must
not change.
"""
from __future__ import annotations

from typing import Any

from panel.models import ApiConfig, File, Mod, Server
from panel.services.uploads import basename
from panel.storage import DatabaseStorage, storage as default_storage


class ConfigurationError(RuntimeError):
    """Raised when the manifest cannot be built because API configuration is missing."""


def mod_module(mod: Mod, server: Server) -> dict[str, Any]:
    module: dict[str, Any] = {
        "id": mod.mod_id,
        "name": mod.name,
        "type": "Library" if mod.type == "Library" else "FabricMod",
        "artifact": {
            "size": mod.size or 0,
            "url": mod.url or f"/uploads/{server.server_id}/mods/{mod.mod_id}",
            "MD5": mod.md5 or "",
        },
    }
    # Required mods carry no marker at all; absence means required
    if not mod.required:
        module["required"] = {"value": False, "def": bool(mod.optional_default)}
    return module


def file_module(file: File, server: Server) -> dict[str, Any]:
    name = basename(file.path)
    return {
        "id": name,
        "name": name,
        "type": "File",
        "artifact": {
            "size": file.size or 0,
            "url": f"/uploads/{server.server_id}/{file.path}",
            "path": file.path,
        },
    }


def server_entry(server: Server, api_config: ApiConfig, modules: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "id": server.server_id,
        "name": server.name,
        "description": server.description or "",
        "icon": server.icon or "",
        "version": server.version,
        "address": server.address or "",
        "minecraftVersion": server.minecraft_version,
        "discord": {
            "shortId": api_config.discord_client_id or "",
            "largeImageText": "logo",
            "largeImageKey": "logo_without_background",
        },
        "mainServer": bool(server.main_server),
        "autoconnect": bool(server.autoconnect),
        "modules": modules,
    }


async def build_distribution(storage: DatabaseStorage = default_storage) -> dict[str, Any]:
    """Assemble the manifest for every server. Raises ConfigurationError if no ApiConfig row exists."""
    api_config = await storage.get_api_config()
    if not api_config:
        raise ConfigurationError("API configuration not found")

    servers = []
    for server in await storage.get_servers():
        modules = [mod_module(mod, server) for mod in await storage.get_mods(server.server_id)]
        modules.extend(
            file_module(f, server)
            for f in await storage.get_files(server.server_id)
            if not f.is_directory
        )
        servers.append(server_entry(server, api_config, modules))

    return {
        "version": api_config.version or "1.0.0",
        "rss": api_config.rss_url or "",
        "discord": {
            "clientId": api_config.discord_client_id or "",
            "smallImageText": api_config.discord_small_image_text or "logo",
            "smallImageKey": api_config.discord_small_image_key or "logo",
        },
        "servers": servers,
    }
