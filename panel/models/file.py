"""Uploaded file model (virtual per-server filesystem)."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from panel.models.base import Base


class File(Base):
    """File or directory node. Nesting is implied by '/'-separated path segments."""

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.server_id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False, index=True
    )
    path: Mapped[str] = mapped_column(Text, nullable=False)
    is_directory: Mapped[bool] = mapped_column(Boolean, default=False)
    is_sticky: Mapped[bool] = mapped_column(Boolean, default=False)
    size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_modified: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    server: Mapped["Server"] = relationship("Server", back_populates="files")
