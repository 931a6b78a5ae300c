"""Tests for installer state, API config and site settings."""
import pytest
from sqlalchemy import func, select

from panel.models import ApiConfig, SiteSettings
from panel.models.base import async_session_factory
from panel.storage import storage


async def _count(model):
    async with async_session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_installer_flow(client):
    r = await client.get("/api/installer/status")
    assert r.status_code == 200
    assert r.json() == {"installed": False}

    r = await client.post(
        "/api/installer/complete",
        json={"dbHost": "localhost", "dbPort": "5432", "dbName": "minelaunch", "dbUser": "panel"},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["isInstalled"] is True
    assert data["dbName"] == "minelaunch"
    assert data["installedAt"] is not None

    r = await client.get("/api/installer/status")
    assert r.json() == {"installed": True}


@pytest.mark.asyncio
async def test_api_config_singleton(client, auth_headers):
    r = await client.get("/api/config", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {}

    r = await client.post("/api/config", json={"rssUrl": "https://a.example/rss"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["version"] == "1.0.0"

    r = await client.post(
        "/api/config",
        json={"rssUrl": "https://b.example/rss", "version": "1.1.0"},
        headers=auth_headers,
    )
    assert r.status_code == 200

    r = await client.get("/api/config", headers=auth_headers)
    assert r.json()["rssUrl"] == "https://b.example/rss"
    assert r.json()["version"] == "1.1.0"
    assert await _count(ApiConfig) == 1


@pytest.mark.asyncio
async def test_site_settings_partial_update(client, auth_headers):
    r = await client.get("/api/settings", headers=auth_headers)
    assert r.json() == {}

    r = await client.post("/api/settings", json={"siteName": "My Panel"}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["siteName"] == "My Panel"
    assert data["enableRegistration"] is True
    assert data["maintenanceMode"] is False

    r = await client.post("/api/settings", json={"maintenanceMode": True}, headers=auth_headers)
    data = r.json()
    assert data["siteName"] == "My Panel"
    assert data["maintenanceMode"] is True
    assert await _count(SiteSettings) == 1


@pytest.mark.asyncio
async def test_logo_upload(client, auth_headers, uploads_dir):
    files = {"logo": ("logo.png", b"\x89PNG fake", "image/png")}
    r = await client.post("/api/settings/logo", files=files, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["logoUrl"] == "/uploads/logo.png"
    assert data["settings"]["logoUrl"] == "/uploads/logo.png"
    assert (uploads_dir / "logo.png").read_bytes() == b"\x89PNG fake"


@pytest.mark.asyncio
async def test_logo_upload_requires_auth(client):
    files = {"logo": ("logo.png", b"x", "image/png")}
    r = await client.post("/api/settings/logo", files=files)
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_singleton_insert_race_falls_back_to_update(monkeypatch):
    """A writer that lost the insert race retries as an update instead of adding a second row."""
    await storage.update_site_settings({"site_name": "First"})

    real_update = storage._update
    calls = []

    async def stale_update(model, pk, values):
        # First attempt behaves as if the row did not exist yet
        calls.append(pk)
        if len(calls) == 1:
            return None
        return await real_update(model, pk, values)

    monkeypatch.setattr(storage, "_update", stale_update)
    settings = await storage.update_site_settings({"site_name": "Second"})

    assert len(calls) == 2
    assert settings.site_name == "Second"
    assert await _count(SiteSettings) == 1


@pytest.mark.asyncio
async def test_api_config_partial_update_keeps_other_fields(client, auth_headers):
    r = await client.post(
        "/api/config",
        json={"rssUrl": "https://old.example/rss", "discordClientId": "123", "version": "2.0.0"},
        headers=auth_headers,
    )
    assert r.status_code == 200

    r = await client.post("/api/config", json={"rssUrl": "https://new.example/rss"}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["rssUrl"] == "https://new.example/rss"
    assert data["discordClientId"] == "123"
    assert data["version"] == "2.0.0"


@pytest.mark.asyncio
async def test_installer_complete_keeps_saved_connection_fields(client):
    await client.post("/api/installer/complete", json={"dbHost": "db.local", "dbName": "minelaunch"})
    r = await client.post("/api/installer/complete", json={"dbUser": "panel"})
    assert r.status_code == 201
    data = r.json()
    assert data["dbHost"] == "db.local"
    assert data["dbName"] == "minelaunch"
    assert data["dbUser"] == "panel"
    assert data["isInstalled"] is True
