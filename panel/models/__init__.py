"""Database models."""
from panel.models.base import Base, init_db
from panel.models.user import Permission, User, UserPermission
from panel.models.server import Server
from panel.models.mod import Mod
from panel.models.file import File
from panel.models.server_stat import ServerStat
from panel.models.settings import ApiConfig, InstallerSettings, SiteSettings  # noqa: F401 - for metadata

__all__ = [
    "Base",
    "User",
    "Permission",
    "UserPermission",
    "Server",
    "Mod",
    "File",
    "ServerStat",
    "InstallerSettings",
    "ApiConfig",
    "SiteSettings",
    "init_db",
]
