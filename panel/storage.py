"""Database storage: the single point of access for every table.

Each method borrows its own session from ``async_session_factory`` and returns
rows as stored (ORM objects stay readable after the session closes because
``expire_on_commit`` is off). Reads never synthesize rows.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional, Type, TypeVar

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError

from panel.models import (
    ApiConfig,
    File,
    InstallerSettings,
    Mod,
    Permission,
    Server,
    ServerStat,
    SiteSettings,
    User,
    UserPermission,
)
from panel.models.base import Base, async_session_factory
from panel.models.settings import SINGLETON_ID

logger = logging.getLogger("minelaunch.storage")

T = TypeVar("T", bound=Base)

# Loader bootstrap pair attached to every new server
DEFAULT_LIBRARIES = [
    {
        "mod_id": "net.fabricmc:fabric-loader:0.16.13",
        "name": "Fabric",
        "type": "Library",
        "url": "https://maven.fabricmc.net/net/fabricmc/fabric-loader/0.16.13/fabric-loader-0.16.13.jar",
    },
    {
        "mod_id": "net.fabricmc:intermediary:1.20.1",
        "name": "Fabric Intermediary",
        "type": "Library",
        "url": "https://maven.fabricmc.net/net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar",
    },
]

DEFAULT_STATS_LIMIT = 24


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseStorage:
    """Per-entity CRUD over the panel schema."""

    # --- generic helpers ---

    async def _get(self, model: Type[T], pk: int) -> Optional[T]:
        async with async_session_factory() as session:
            return await session.get(model, pk)

    async def _insert(self, row: T) -> T:
        async with async_session_factory() as session:
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return row

    async def _update(self, model: Type[T], pk: int, values: dict[str, Any]) -> Optional[T]:
        async with async_session_factory() as session:
            row = await session.get(model, pk)
            if not row:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()
            await session.refresh(row)
            return row

    async def _delete(self, model: Type[T], pk: int) -> bool:
        async with async_session_factory() as session:
            result = await session.execute(delete(model).where(model.id == pk))
            await session.commit()
            return result.rowcount > 0

    async def _upsert_singleton(self, model: Type[T], values: dict[str, Any]) -> T:
        """Update the one row of a singleton table, or insert it if the table is empty."""
        row = await self._update(model, SINGLETON_ID, values)
        if row:
            return row
        try:
            return await self._insert(model(id=SINGLETON_ID, **values))
        except IntegrityError:
            # Another writer inserted the row between our read and insert
            logger.info("Concurrent insert on %s, retrying as update", model.__tablename__)
            row = await self._update(model, SINGLETON_ID, values)
            if row is None:
                raise
            return row

    # --- users ---

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self._get(User, user_id)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with async_session_factory() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with async_session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def get_users(self) -> list[User]:
        async with async_session_factory() as session:
            result = await session.execute(select(User).order_by(User.username))
            return list(result.scalars().all())

    async def count_users(self) -> int:
        async with async_session_factory() as session:
            result = await session.execute(select(func.count()).select_from(User))
            return result.scalar_one()

    async def create_user(self, data: dict[str, Any]) -> User:
        return await self._insert(User(**data))

    async def update_user(self, user_id: int, data: dict[str, Any]) -> Optional[User]:
        return await self._update(User, user_id, {**data, "updated_at": datetime.utcnow()})

    async def delete_user(self, user_id: int) -> bool:
        return await self._delete(User, user_id)

    # --- servers ---

    async def get_servers(self) -> list[Server]:
        async with async_session_factory() as session:
            result = await session.execute(select(Server).order_by(Server.name, Server.id))
            return list(result.scalars().all())

    async def get_server(self, server_id: str) -> Optional[Server]:
        async with async_session_factory() as session:
            result = await session.execute(select(Server).where(Server.server_id == server_id))
            return result.scalar_one_or_none()

    async def create_server(self, data: dict[str, Any]) -> Server:
        """Insert a server together with its default loader libraries in one transaction."""
        async with async_session_factory() as session:
            server = Server(**data, updated_at=datetime.utcnow())
            session.add(server)
            for lib in DEFAULT_LIBRARIES:
                session.add(
                    Mod(
                        server_id=server.server_id,
                        required=True,
                        updated_at=datetime.utcnow(),
                        **lib,
                    )
                )
            await session.commit()
            await session.refresh(server)
            return server

    async def update_server(self, server_id: str, data: dict[str, Any]) -> Optional[Server]:
        async with async_session_factory() as session:
            result = await session.execute(select(Server).where(Server.server_id == server_id))
            server = result.scalar_one_or_none()
            if not server:
                return None
            for key, value in data.items():
                setattr(server, key, value)
            server.updated_at = datetime.utcnow()
            await session.commit()
            await session.refresh(server)
            return server

    async def delete_server(self, server_id: str) -> bool:
        """Delete a server; mods, files and stats go with it through ON DELETE CASCADE."""
        async with async_session_factory() as session:
            result = await session.execute(delete(Server).where(Server.server_id == server_id))
            await session.commit()
            return result.rowcount > 0

    # --- mods ---

    async def get_mods(self, server_id: str) -> list[Mod]:
        async with async_session_factory() as session:
            result = await session.execute(
                select(Mod).where(Mod.server_id == server_id).order_by(Mod.id)
            )
            return list(result.scalars().all())

    async def get_mod(self, mod_id: int) -> Optional[Mod]:
        return await self._get(Mod, mod_id)

    async def create_mod(self, data: dict[str, Any]) -> Mod:
        return await self._insert(Mod(**data, updated_at=datetime.utcnow()))

    async def update_mod(self, mod_id: int, data: dict[str, Any]) -> Optional[Mod]:
        return await self._update(Mod, mod_id, {**data, "updated_at": datetime.utcnow()})

    async def delete_mod(self, mod_id: int) -> bool:
        return await self._delete(Mod, mod_id)

    # --- files ---

    @staticmethod
    def _path_filter(path: str):
        """Match the node at ``path`` and everything nested below it."""
        return or_(
            File.path == path,
            File.path.like(_escape_like(path) + "/%", escape="\\"),
        )

    async def get_files(self, server_id: str, path: Optional[str] = None) -> list[File]:
        query = select(File).where(File.server_id == server_id)
        if path:
            query = query.where(self._path_filter(path))
        async with async_session_factory() as session:
            result = await session.execute(query.order_by(File.path))
            return list(result.scalars().all())

    async def get_file(self, file_id: int) -> Optional[File]:
        return await self._get(File, file_id)

    async def create_file(self, data: dict[str, Any]) -> File:
        return await self._insert(File(**data, last_modified=datetime.utcnow()))

    async def update_file(self, file_id: int, data: dict[str, Any]) -> Optional[File]:
        return await self._update(File, file_id, {**data, "last_modified": datetime.utcnow()})

    async def delete_file(self, file_id: int) -> bool:
        return await self._delete(File, file_id)

    async def delete_files(self, server_id: str, path: str) -> int:
        """Delete the node at ``path`` and its descendants. Returns the number of rows removed."""
        async with async_session_factory() as session:
            result = await session.execute(
                delete(File).where(File.server_id == server_id, self._path_filter(path))
            )
            await session.commit()
            return result.rowcount

    # --- server stats ---

    async def get_server_stats(self, server_id: str, limit: int = DEFAULT_STATS_LIMIT) -> list[ServerStat]:
        async with async_session_factory() as session:
            result = await session.execute(
                select(ServerStat)
                .where(ServerStat.server_id == server_id)
                .order_by(ServerStat.timestamp.desc(), ServerStat.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_latest_server_stat(self, server_id: str) -> Optional[ServerStat]:
        stats = await self.get_server_stats(server_id, limit=1)
        return stats[0] if stats else None

    async def create_server_stat(self, data: dict[str, Any]) -> ServerStat:
        return await self._insert(ServerStat(**data))

    # --- installer ---

    async def get_installer_settings(self) -> Optional[InstallerSettings]:
        return await self._get(InstallerSettings, SINGLETON_ID)

    async def update_installer_settings(self, data: dict[str, Any]) -> InstallerSettings:
        return await self._upsert_singleton(
            InstallerSettings, {**data, "installed_at": datetime.utcnow()}
        )

    async def is_installed(self) -> bool:
        settings = await self.get_installer_settings()
        return bool(settings and settings.is_installed)

    # --- API config ---

    async def get_api_config(self) -> Optional[ApiConfig]:
        return await self._get(ApiConfig, SINGLETON_ID)

    async def update_api_config(self, data: dict[str, Any]) -> ApiConfig:
        return await self._upsert_singleton(ApiConfig, data)

    # --- site settings ---

    async def get_site_settings(self) -> Optional[SiteSettings]:
        return await self._get(SiteSettings, SINGLETON_ID)

    async def update_site_settings(self, data: dict[str, Any]) -> SiteSettings:
        return await self._upsert_singleton(SiteSettings, {**data, "updated_at": datetime.utcnow()})

    async def update_logo(self, logo_url: str) -> SiteSettings:
        return await self.update_site_settings({"logo_url": logo_url})

    # --- permissions ---

    async def get_permissions(self) -> list[Permission]:
        async with async_session_factory() as session:
            result = await session.execute(select(Permission).order_by(Permission.name))
            return list(result.scalars().all())

    async def get_permission(self, permission_id: int) -> Optional[Permission]:
        return await self._get(Permission, permission_id)

    async def get_permission_by_name(self, name: str) -> Optional[Permission]:
        async with async_session_factory() as session:
            result = await session.execute(select(Permission).where(Permission.name == name))
            return result.scalar_one_or_none()

    async def create_permission(self, data: dict[str, Any]) -> Permission:
        return await self._insert(Permission(**data))

    async def get_user_permissions(self, user_id: int) -> list[Permission]:
        async with async_session_factory() as session:
            result = await session.execute(
                select(Permission)
                .join(UserPermission, UserPermission.permission_id == Permission.id)
                .where(UserPermission.user_id == user_id)
                .order_by(Permission.name)
            )
            return list(result.scalars().all())

    async def add_user_permission(self, user_id: int, permission_id: int) -> UserPermission:
        return await self._insert(UserPermission(user_id=user_id, permission_id=permission_id))

    async def remove_user_permission(self, user_id: int, permission_id: int) -> bool:
        async with async_session_factory() as session:
            result = await session.execute(
                delete(UserPermission).where(
                    UserPermission.user_id == user_id,
                    UserPermission.permission_id == permission_id,
                )
            )
            await session.commit()
            return result.rowcount > 0


storage = DatabaseStorage()
