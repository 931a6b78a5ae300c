"""Server statistics: history, external ingestion, realtime WebSocket."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from pydantic import Field

from panel.services.stats import serve_stats
from panel.storage import DEFAULT_STATS_LIMIT, storage
from web.api.utils import CamelModel, stats_rate_limit

logger = logging.getLogger("minelaunch.stats")

router = APIRouter(prefix="/api", tags=["stats"])


class ServerStatReport(CamelModel):
    server_id: str = Field(min_length=1)
    active_players: int = Field(0, ge=0)
    current_bandwidth: int = Field(0, ge=0)
    total_bandwidth: int = Field(0, ge=0)
    total_session_time: int = Field(0, ge=0)


class ServerStatResponse(CamelModel):
    id: int
    server_id: str
    active_players: Optional[int]
    current_bandwidth: Optional[int]
    total_bandwidth: Optional[int]
    total_session_time: Optional[int]
    timestamp: datetime


@router.get("/servers/{server_id}/stats", response_model=list[ServerStatResponse])
async def list_server_stats(server_id: str, limit: int = Query(DEFAULT_STATS_LIMIT, ge=1, le=1000)):
    """Most recent samples for a server, newest first."""
    return await storage.get_server_stats(server_id, limit)


@router.post(
    "/stats",
    response_model=ServerStatResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(stats_rate_limit)],
)
async def report_stats(body: ServerStatReport):
    """Record a sample reported by an external service (public, rate limited)."""
    if not await storage.get_server(body.server_id):
        raise HTTPException(404, "Server not found")
    return await storage.create_server_stat(body.model_dump())


@router.websocket("/stats/ws")
async def stats_socket(websocket: WebSocket):
    await websocket.accept()
    logger.info("Stats WebSocket client connected")
    try:
        await serve_stats(websocket)
    finally:
        logger.info("Stats WebSocket client disconnected")
