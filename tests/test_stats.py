"""Tests for stats ingestion, history and the realtime stats channel."""
import asyncio
import time

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from panel.services.stats import EMPTY_STATS, collect_snapshot, serve_stats
from panel.storage import storage
from tests.conftest import SERVER_PAYLOAD
from web.api.main import app
from web.api.utils import RateLimiter, stats_rate_limit


class FakeWebSocket:
    """Records sent messages; receive blocks until the client 'closes'."""

    def __init__(self, fail_after=None):
        self.sent = []
        self.closed = asyncio.Event()
        self.fail_after = fail_after

    async def send_json(self, data):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("connection lost")
        self.sent.append(data)

    async def receive_text(self):
        await self.closed.wait()
        raise WebSocketDisconnect(code=1000)


async def _wait_for(predicate, timeout=2.0):
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout)


@pytest.mark.asyncio
async def test_report_stats(client, server):
    r = await client.post(
        "/api/stats",
        json={
            "serverId": "survival",
            "activePlayers": 5,
            "currentBandwidth": 100,
            "totalBandwidth": 5_000_000_000,
            "totalSessionTime": 3600,
        },
    )
    assert r.status_code == 201
    data = r.json()
    assert data["activePlayers"] == 5
    assert data["totalBandwidth"] == 5_000_000_000


@pytest.mark.asyncio
async def test_report_stats_unknown_server(client):
    r = await client.post("/api/stats", json={"serverId": "missing", "activePlayers": 1})
    assert r.status_code == 404
    assert await storage.get_server_stats("missing") == []


@pytest.mark.asyncio
async def test_report_stats_validation(client, server):
    r = await client.post("/api/stats", json={"serverId": "survival", "activePlayers": -1})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_report_stats_rate_limited(client, server, monkeypatch):
    monkeypatch.setattr(stats_rate_limit, "limit", 2)
    for _ in range(2):
        r = await client.post("/api/stats", json={"serverId": "survival"})
        assert r.status_code == 201
    r = await client.post("/api/stats", json={"serverId": "survival"})
    assert r.status_code == 429
    assert r.json()["message"] == "Too many requests, please try again later"
    assert len(await storage.get_server_stats("survival")) == 2


def test_rate_limiter_window():
    limiter = RateLimiter(limit=1, window_seconds=0.05)
    assert limiter.hit() is True
    assert limiter.hit() is False
    time.sleep(0.06)
    assert limiter.hit() is True


@pytest.mark.asyncio
async def test_stats_history_newest_first(client, server):
    for players in (1, 2, 3):
        await storage.create_server_stat({"server_id": "survival", "active_players": players})

    r = await client.get("/api/servers/survival/stats")
    assert r.status_code == 200
    assert [s["activePlayers"] for s in r.json()] == [3, 2, 1]

    r = await client.get("/api/servers/survival/stats", params={"limit": 2})
    assert [s["activePlayers"] for s in r.json()] == [3, 2]

    r = await client.get("/api/servers/survival/stats", params={"limit": 0})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_snapshot_uses_latest_or_zeros(client, auth_headers, server):
    await client.post(
        "/api/servers", json={**SERVER_PAYLOAD, "serverId": "creative", "name": "Creative"}, headers=auth_headers
    )
    await storage.create_server_stat({"server_id": "survival", "active_players": 1})
    await storage.create_server_stat({"server_id": "survival", "active_players": 7, "total_session_time": 60})

    snapshot = await collect_snapshot()
    assert [s["serverId"] for s in snapshot] == ["creative", "survival"]
    assert snapshot[0]["stats"] == EMPTY_STATS
    assert snapshot[1]["serverName"] == "Survival"
    assert snapshot[1]["stats"]["activePlayers"] == 7
    assert snapshot[1]["stats"]["totalSessionTime"] == 60


@pytest.mark.asyncio
async def test_stats_channel_sends_immediately(server):
    ws = FakeWebSocket()
    task = asyncio.create_task(serve_stats(ws, interval=60))
    try:
        await _wait_for(lambda: len(ws.sent) == 1)
        message = ws.sent[0]
        assert message["type"] == "stats"
        assert message["data"][0]["serverId"] == "survival"
        assert message["data"][0]["stats"] == EMPTY_STATS
        await asyncio.sleep(0.05)
        assert len(ws.sent) == 1
    finally:
        ws.closed.set()
        await asyncio.wait_for(task, 2)


@pytest.mark.asyncio
async def test_stats_channel_stops_after_disconnect(server):
    ws = FakeWebSocket()
    task = asyncio.create_task(serve_stats(ws, interval=0.01))
    await _wait_for(lambda: len(ws.sent) >= 3)

    ws.closed.set()
    await asyncio.wait_for(task, 2)
    count = len(ws.sent)
    await asyncio.sleep(0.05)
    assert len(ws.sent) == count


@pytest.mark.asyncio
async def test_stats_channel_ends_when_send_fails(server):
    """A failed send ends the connection even if the client never closes."""
    ws = FakeWebSocket(fail_after=2)
    await asyncio.wait_for(serve_stats(ws, interval=0.01), 2)
    assert len(ws.sent) == 2


def test_stats_websocket_route_sends_snapshot():
    """The /api/stats/ws route accepts, pushes a snapshot right away and closes cleanly."""
    http = TestClient(app)
    r = http.post("/api/login", json={"username": "admin", "password": "testpass123"})
    headers = {"Authorization": f"Bearer {r.json()['accessToken']}"}
    r = http.post("/api/servers", json=SERVER_PAYLOAD, headers=headers)
    assert r.status_code == 201

    with http.websocket_connect("/api/stats/ws") as ws:
        message = ws.receive_json()

    assert message["type"] == "stats"
    assert message["data"] == [
        {"serverId": "survival", "serverName": "Survival", "stats": EMPTY_STATS},
    ]
