"""Pytest configuration and fixtures for API tests."""
import os
import tempfile

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["INITIAL_ADMIN_USERNAME"] = "admin"
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="minelaunch-uploads-"))

import pytest
from httpx import ASGITransport, AsyncClient

import config
from panel.models.base import engine, init_db
from web.api.main import app
from web.api.utils import stats_rate_limit

SERVER_PAYLOAD = {
    "serverId": "survival",
    "name": "Survival",
    "description": "Vanilla+ survival",
    "version": "1.0.0",
    "address": "play.example.com:25565",
    "minecraftVersion": "1.20.1",
    "loaderType": "Fabric",
    "loaderVersion": "0.16.13",
    "mainServer": True,
}


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh in-memory database per test (ASGI lifespan doesn't run with httpx).

    Disposing the engine drops the only connection, and with it the in-memory database.
    """
    await init_db()
    stats_rate_limit.reset()
    yield
    await engine.dispose()


@pytest.fixture(autouse=True)
def uploads_dir(tmp_path, monkeypatch):
    """Point the upload tree at a per-test directory."""
    path = tmp_path / "uploads"
    path.mkdir()
    monkeypatch.setattr(config, "UPLOADS_DIR", path)
    return path


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    """Login as admin and return Authorization headers for protected endpoints."""
    r = await client.post(
        "/api/login",
        json={"username": "admin", "password": "testpass123"},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    token = r.json()["accessToken"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def server(client, auth_headers):
    """A created server (as returned by the API)."""
    r = await client.post("/api/servers", json=SERVER_PAYLOAD, headers=auth_headers)
    assert r.status_code == 201, r.text
    return r.json()
