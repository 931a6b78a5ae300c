"""Tests for the launcher distribution manifest."""
import pytest

from panel.storage import DEFAULT_LIBRARIES, storage

API_CONFIG = {
    "rssUrl": "https://example.com/feed.xml",
    "discordClientId": "1234567890",
    "discordSmallImageText": "MineLaunch",
    "discordSmallImageKey": "ml_logo",
    "version": "2.1.0",
}


@pytest.mark.asyncio
async def test_distribution_requires_api_config(client, server):
    r = await client.get("/api/distribution")
    assert r.status_code == 500
    assert r.json()["message"] == "API configuration not found"


@pytest.mark.asyncio
async def test_distribution_empty(client, auth_headers):
    await client.post("/api/config", json=API_CONFIG, headers=auth_headers)
    r = await client.get("/api/distribution")
    assert r.status_code == 200
    assert r.json() == {
        "version": "2.1.0",
        "rss": "https://example.com/feed.xml",
        "discord": {
            "clientId": "1234567890",
            "smallImageText": "MineLaunch",
            "smallImageKey": "ml_logo",
        },
        "servers": [],
    }


@pytest.mark.asyncio
async def test_distribution_server_entry(client, auth_headers, server):
    await client.post("/api/config", json=API_CONFIG, headers=auth_headers)
    r = await client.get("/api/distribution")
    assert r.status_code == 200
    entry = r.json()["servers"][0]

    assert entry["id"] == "survival"
    assert entry["name"] == "Survival"
    assert entry["icon"] == ""
    assert entry["address"] == "play.example.com:25565"
    assert entry["minecraftVersion"] == "1.20.1"
    assert entry["mainServer"] is True
    assert entry["autoconnect"] is False
    assert entry["discord"] == {
        "shortId": "1234567890",
        "largeImageText": "logo",
        "largeImageKey": "logo_without_background",
    }

    libraries = entry["modules"]
    assert [m["id"] for m in libraries] == [lib["mod_id"] for lib in DEFAULT_LIBRARIES]
    assert libraries[0]["type"] == "Library"
    assert libraries[0]["artifact"]["url"] == DEFAULT_LIBRARIES[0]["url"]
    assert libraries[0]["artifact"]["size"] == 0
    assert libraries[0]["artifact"]["MD5"] == ""
    assert all("required" not in m for m in libraries)


@pytest.mark.asyncio
async def test_distribution_optional_mod_marker(client, auth_headers, server):
    await client.post("/api/config", json=API_CONFIG, headers=auth_headers)
    base = {"serverId": "survival", "type": "FabricMod", "url": "https://cdn.example.com/m.jar"}
    await client.post(
        "/api/mods",
        json={**base, "modId": "sodium", "name": "Sodium", "required": False, "optionalDefault": True, "md5": "abc"},
        headers=auth_headers,
    )
    await client.post(
        "/api/mods",
        json={**base, "modId": "minimap", "name": "Minimap", "required": False},
        headers=auth_headers,
    )
    await client.post(
        "/api/mods",
        json={**base, "modId": "core", "name": "Core", "type": "Mod"},
        headers=auth_headers,
    )

    modules = {m["id"]: m for m in (await client.get("/api/distribution")).json()["servers"][0]["modules"]}
    assert modules["sodium"]["required"] == {"value": False, "def": True}
    assert modules["sodium"]["artifact"]["MD5"] == "abc"
    assert modules["minimap"]["required"] == {"value": False, "def": False}
    assert "required" not in modules["core"]
    assert modules["core"]["type"] == "FabricMod"


@pytest.mark.asyncio
async def test_distribution_includes_uploaded_files(client, auth_headers, server):
    await client.post("/api/config", json=API_CONFIG, headers=auth_headers)
    await client.post("/api/files/survival/mkdir", json={"path": "config"}, headers=auth_headers)
    await client.post(
        "/api/files/survival/content",
        json={"path": "config/options.txt", "content": "fov:90"},
        headers=auth_headers,
    )

    modules = (await client.get("/api/distribution")).json()["servers"][0]["modules"]
    files = [m for m in modules if m["type"] == "File"]
    assert files == [
        {
            "id": "options.txt",
            "name": "options.txt",
            "type": "File",
            "artifact": {
                "size": 6,
                "url": "/uploads/survival/config/options.txt",
                "path": "config/options.txt",
            },
        }
    ]
    # Mods come before files
    assert modules[-1]["type"] == "File"


@pytest.mark.asyncio
async def test_distribution_defaults_for_sparse_config(client, auth_headers):
    await storage.update_api_config({"version": None})
    body = (await client.get("/api/distribution")).json()
    assert body["version"] == "1.0.0"
    assert body["rss"] == ""
    assert body["discord"] == {"clientId": "", "smallImageText": "logo", "smallImageKey": "logo"}
