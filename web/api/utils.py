"""Shared API utilities: camelCase JSON schemas, error handlers, rate limiting."""
from __future__ import annotations

import logging
import time

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

import config

logger = logging.getLogger("minelaunch.api")


class CamelModel(BaseModel):
    """Schema serialized with camelCase keys; accepts camelCase or snake_case on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def clean_updates(body: BaseModel, not_null: set[str]) -> dict:
    """Fields the client actually sent, minus explicit nulls for columns that cannot be null."""
    return {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k not in not_null}


# --- error handling ---


def _error_location(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts)


def format_validation_error(exc: RequestValidationError) -> str:
    """Human-readable summary of pydantic errors, e.g. 'Validation error: Field required at "name"'."""
    messages = []
    for error in exc.errors():
        where = _error_location(error.get("loc", ()))
        msg = error.get("msg", "Invalid value")
        messages.append(f'{msg} at "{where}"' if where else msg)
    return "Validation error: " + "; ".join(messages)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": format_validation_error(exc)})


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("API error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"message": "Internal server error"})


# --- rate limiting ---


class RateLimiter:
    """Fixed-window limiter shared by every caller of one instance (process-wide, not per client)."""

    def __init__(self, limit: int, window_seconds: float, message: str = "Too many requests, please try again later"):
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self._window_start = 0.0
        self._count = 0

    def reset(self) -> None:
        self._window_start = 0.0
        self._count = 0

    def hit(self) -> bool:
        """Record one request. Returns False if the current window is already full."""
        now = time.monotonic()
        if now - self._window_start >= self.window_seconds:
            self._window_start = now
            self._count = 0
        if self._count >= self.limit:
            return False
        self._count += 1
        return True

    async def __call__(self) -> None:
        if not self.hit():
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=self.message)


stats_rate_limit = RateLimiter(config.STATS_RATE_LIMIT, config.STATS_RATE_WINDOW_SECONDS)
