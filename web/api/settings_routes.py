"""Installer state, launcher API config and site settings (singleton rows)."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File as FileParam, HTTPException, UploadFile, status

from panel.models import User
from panel.services import uploads
from panel.storage import storage
from web.api.utils import CamelModel
from web.auth import require_user

logger = logging.getLogger("minelaunch.api")

router = APIRouter(prefix="/api", tags=["settings"])


# --- Pydantic schemas ---


class InstallerSettingsUpdate(CamelModel):
    db_host: Optional[str] = None
    db_port: Optional[str] = None
    db_name: Optional[str] = None
    db_user: Optional[str] = None


class InstallerSettingsResponse(CamelModel):
    id: int
    is_installed: Optional[bool]
    db_host: Optional[str]
    db_port: Optional[str]
    db_name: Optional[str]
    db_user: Optional[str]
    installed_at: Optional[datetime]


class ApiConfigUpdate(CamelModel):
    rss_url: Optional[str] = None
    discord_client_id: Optional[str] = None
    discord_small_image_text: Optional[str] = None
    discord_small_image_key: Optional[str] = None
    version: Optional[str] = None


class ApiConfigResponse(CamelModel):
    id: int
    rss_url: Optional[str]
    discord_client_id: Optional[str]
    discord_small_image_text: Optional[str]
    discord_small_image_key: Optional[str]
    version: Optional[str]


class SiteSettingsUpdate(CamelModel):
    site_name: Optional[str] = None
    site_url: Optional[str] = None
    logo_url: Optional[str] = None
    maintenance_mode: Optional[bool] = None
    enable_registration: Optional[bool] = None


class SiteSettingsResponse(CamelModel):
    id: int
    site_name: Optional[str]
    site_url: Optional[str]
    logo_url: Optional[str]
    maintenance_mode: Optional[bool]
    enable_registration: Optional[bool]
    updated_at: datetime


class LogoUploadResponse(CamelModel):
    success: bool
    logo_url: str
    settings: SiteSettingsResponse


# --- Installer ---


@router.get("/installer/status")
async def installer_status():
    return {"installed": await storage.is_installed()}


@router.post("/installer/complete", response_model=InstallerSettingsResponse, status_code=status.HTTP_201_CREATED)
async def complete_installation(body: InstallerSettingsUpdate):
    """Record installer settings and mark the panel installed."""
    settings = await storage.update_installer_settings({**body.model_dump(exclude_unset=True), "is_installed": True})
    logger.info("Installation completed")
    return settings


# --- API config ---


@router.get("/config")
async def get_api_config(user: User = Depends(require_user)):
    """Launcher API configuration, or {} before it is first saved."""
    api_config = await storage.get_api_config()
    if not api_config:
        return {}
    return ApiConfigResponse.model_validate(api_config)


@router.post("/config", response_model=ApiConfigResponse)
async def update_api_config(body: ApiConfigUpdate, user: User = Depends(require_user)):
    """Update launcher API config. Omitted fields keep their stored (or default) value."""
    return await storage.update_api_config(body.model_dump(exclude_unset=True))


# --- Site settings ---


@router.get("/settings")
async def get_site_settings(user: User = Depends(require_user)):
    """Site settings, or {} before they are first saved."""
    settings = await storage.get_site_settings()
    if not settings:
        return {}
    return SiteSettingsResponse.model_validate(settings)


@router.post("/settings", response_model=SiteSettingsResponse)
async def update_site_settings(body: SiteSettingsUpdate, user: User = Depends(require_user)):
    """Update site settings. Omitted fields keep their stored (or default) value."""
    return await storage.update_site_settings(body.model_dump(exclude_unset=True))


@router.post("/settings/logo", response_model=LogoUploadResponse)
async def upload_logo(logo: UploadFile = FileParam(...), user: User = Depends(require_user)):
    content = await logo.read()
    try:
        logo_url = await uploads.save_logo(logo.filename or "", content)
    except uploads.UnsafePathError as e:
        raise HTTPException(400, "No file uploaded") from e
    settings = await storage.update_logo(logo_url)
    return LogoUploadResponse(
        success=True, logo_url=logo_url, settings=SiteSettingsResponse.model_validate(settings)
    )
