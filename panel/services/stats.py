"""Realtime server statistics pushed over WebSocket.

Each connection owns one sender task: it sends a snapshot as soon as the
socket is accepted, then again every ``config.STATS_INTERVAL_SECONDS`` until
the client disconnects or a send fails. Snapshots are computed fresh for every
connection and tick; nothing is cached or shared between sockets.

Message format:
    {
        "type": "stats",
        "data": [
            {"serverId": "...", "serverName": "...",
             "stats": {"activePlayers": 0, "currentBandwidth": 0,
                       "totalBandwidth": 0, "totalSessionTime": 0}}
        ]
    }
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

import config
from panel.models import ServerStat
from panel.storage import DatabaseStorage, storage as default_storage

logger = logging.getLogger("minelaunch.stats")

EMPTY_STATS = {
    "activePlayers": 0,
    "currentBandwidth": 0,
    "totalBandwidth": 0,
    "totalSessionTime": 0,
}


def stat_values(stat: Optional[ServerStat]) -> dict[str, int]:
    if stat is None:
        return dict(EMPTY_STATS)
    return {
        "activePlayers": stat.active_players or 0,
        "currentBandwidth": stat.current_bandwidth or 0,
        "totalBandwidth": stat.total_bandwidth or 0,
        "totalSessionTime": stat.total_session_time or 0,
    }


async def collect_snapshot(storage: DatabaseStorage = default_storage) -> list[dict[str, Any]]:
    """Latest sample for every server, or zeros for servers that never reported."""
    snapshot = []
    for server in await storage.get_servers():
        latest = await storage.get_latest_server_stat(server.server_id)
        snapshot.append({
            "serverId": server.server_id,
            "serverName": server.name,
            "stats": stat_values(latest),
        })
    return snapshot


async def send_stats(websocket: WebSocket, interval: Optional[float] = None) -> None:
    """Send a snapshot now and then once per interval. Returns (or raises) when a send fails."""
    if interval is None:
        interval = config.STATS_INTERVAL_SECONDS
    while True:
        data = await collect_snapshot()
        await websocket.send_json({"type": "stats", "data": data})
        await asyncio.sleep(interval)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Clients never send anything meaningful; reading only detects the close frame
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


async def serve_stats(websocket: WebSocket, interval: Optional[float] = None) -> None:
    """Drive one accepted stats connection until either side stops. The sender task never outlives it."""
    sender = asyncio.create_task(send_stats(websocket, interval))
    receiver = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        if sender in done and not sender.cancelled() and sender.exception() is not None:
            logger.warning("Stats send failed, closing connection: %s", sender.exception())
    finally:
        for task in (sender, receiver):
            task.cancel()
        await asyncio.gather(sender, receiver, return_exceptions=True)
