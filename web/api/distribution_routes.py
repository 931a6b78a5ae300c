"""Public launcher manifest endpoint."""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from panel.services.distribution import ConfigurationError, build_distribution

logger = logging.getLogger("minelaunch.api")

router = APIRouter(prefix="/api", tags=["distribution"])


@router.get("/distribution")
async def get_distribution():
    """distribution.json for the launcher: every server with its mods and uploaded files."""
    try:
        return await build_distribution()
    except ConfigurationError as e:
        logger.error("Cannot build distribution.json: %s", e)
        raise HTTPException(500, str(e)) from e
