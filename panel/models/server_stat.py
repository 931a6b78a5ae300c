"""Server statistics sample."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from panel.models.base import Base


class ServerStat(Base):
    """Immutable time-series sample reported for a server."""

    __tablename__ = "server_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.server_id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False, index=True
    )
    active_players: Mapped[int] = mapped_column(Integer, default=0)
    current_bandwidth: Mapped[int] = mapped_column(BigInteger, default=0)  # bytes/sec
    total_bandwidth: Mapped[int] = mapped_column(BigInteger, default=0)  # bytes
    total_session_time: Mapped[int] = mapped_column(BigInteger, default=0)  # seconds
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    server: Mapped["Server"] = relationship("Server", back_populates="stats")
