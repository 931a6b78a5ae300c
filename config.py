"""Configuration for the MineLaunch admin panel."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_ROOT = Path(__file__).parent

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{_ROOT / 'minelaunch.db'}",
)

# Uploaded files: one directory per server, served under /uploads
UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", str(_ROOT / "uploads")))

# Web auth (JWT secret, initial admin bootstrap)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
JWT_EXPIRE_DAYS = int(os.getenv("JWT_EXPIRE_DAYS", "7"))
INITIAL_ADMIN_USERNAME = os.getenv("INITIAL_ADMIN_USERNAME", "admin")
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")  # Set to bootstrap first admin

# Stats WebSocket push interval and the ingestion rate limit (requests per window)
STATS_INTERVAL_SECONDS = float(os.getenv("STATS_INTERVAL_SECONDS", "5"))
STATS_RATE_LIMIT = int(os.getenv("STATS_RATE_LIMIT", "60"))
STATS_RATE_WINDOW_SECONDS = float(os.getenv("STATS_RATE_WINDOW_SECONDS", "60"))


def _parse_origins(value: str) -> list[str]:
    return [x.strip() for x in value.split(",") if x.strip()] or ["*"]


CORS_ORIGINS = _parse_origins(os.getenv("CORS_ORIGINS", "*"))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
