"""Server instance model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from panel.models.base import Base

LOADER_TYPES = ("Fabric", "Forge")


class Server(Base):
    """Minecraft server published to the launcher. server_id is the external key children reference."""

    __tablename__ = "servers"
    __table_args__ = (
        CheckConstraint(
            "loader_type IN (" + ", ".join(f"'{t}'" for t in LOADER_TYPES) + ")",
            name="ck_servers_loader_type",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[str] = mapped_column(String(32), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    minecraft_version: Mapped[str] = mapped_column(String(32), nullable=False)
    loader_type: Mapped[str] = mapped_column(String(16), nullable=False)
    loader_version: Mapped[str] = mapped_column(String(32), nullable=False)
    main_server: Mapped[bool] = mapped_column(Boolean, default=False)
    autoconnect: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    mods = relationship(
        "Mod", back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )
    files = relationship(
        "File", back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )
    stats = relationship(
        "ServerStat", back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )
