"""Peer registry model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Peer(Base):
    """A peer known to the current signaling session."""

    __tablename__ = "peers"
    __table_args__ = (Index("idx_peers_last_seen", "last_seen"),)

    peer_id: Mapped[str] = mapped_column(String, primary_key=True)
    joined_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_seen: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
