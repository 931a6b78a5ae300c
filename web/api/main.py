"""FastAPI admin panel API - serves REST routes, stats WebSocket, uploads and the built web UI."""
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

import config
from panel.models.base import init_db

from web.api.auth_routes import router as auth_router
from web.api.distribution_routes import router as distribution_router
from web.api.file_routes import router as file_router
from web.api.server_routes import router as server_router
from web.api.settings_routes import router as settings_router
from web.api.stats_routes import router as stats_router
from web.api.utils import (
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(config.UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
    await init_db()
    yield


app = FastAPI(title="MineLaunch Admin Panel API", lifespan=lifespan)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# SPA fallback: serve index.html for non-API 404s so client-side routes work
_frontend_dist = Path(__file__).resolve().parent.parent.parent / "frontend" / "dist"


class SPAFallbackMiddleware(BaseHTTPMiddleware):
    """Serve index.html for 404s on non-API paths (enables /servers, /settings, etc.)."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        path = request.url.path
        if response.status_code == 404 and not path.startswith(("/api", "/uploads")):
            index_path = _frontend_dist / "index.html"
            if index_path.exists():
                return FileResponse(str(index_path), media_type="text/html")
        return response


if _frontend_dist.exists():
    app.add_middleware(SPAFallbackMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(auth_router)
app.include_router(server_router)
app.include_router(file_router)
app.include_router(stats_router)
app.include_router(settings_router)
app.include_router(distribution_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}


# Uploaded files, referenced by artifact URLs in distribution.json
app.mount("/uploads", StaticFiles(directory=str(config.UPLOADS_DIR), check_dir=False), name="uploads")

# Serve built frontend (SPA fallback handled by SPAFallbackMiddleware above)
if _frontend_dist.exists():
    app.mount("/", StaticFiles(directory=str(_frontend_dist), html=True), name="frontend")
