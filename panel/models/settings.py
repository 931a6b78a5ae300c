"""Singleton configuration rows: installer state, launcher API config, site settings.

Each table holds at most one row, always stored under SINGLETON_ID so a second
insert collides on the primary key instead of creating a duplicate.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from panel.models.base import Base

SINGLETON_ID = 1


class InstallerSettings(Base):
    __tablename__ = "installer_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    is_installed: Mapped[bool] = mapped_column(Boolean, default=False)
    db_host: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    db_port: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    db_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    db_user: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    installed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ApiConfig(Base):
    """Values published in the launcher distribution manifest."""

    __tablename__ = "api_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    rss_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discord_client_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    discord_small_image_text: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    discord_small_image_key: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    version: Mapped[Optional[str]] = mapped_column(String(32), default="1.0.0")


class SiteSettings(Base):
    """Admin panel customization."""

    __tablename__ = "site_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SINGLETON_ID)
    site_name: Mapped[Optional[str]] = mapped_column(String(128), default="MineLaunch Admin Panel")
    site_url: Mapped[Optional[str]] = mapped_column(String(255), default="https://admin.minelauncher.com")
    logo_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    maintenance_mode: Mapped[bool] = mapped_column(Boolean, default=False)
    enable_registration: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
