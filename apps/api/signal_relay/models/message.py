"""Signaling message model."""
from __future__ import annotations

from datetime import datetime
import enum

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class MessageType(str, enum.Enum):
    OFFER = "offer"
    ANSWER = "answer"
    CANDIDATE = "candidate"


class Message(Base):
    """Relayed offer, answer or ICE candidate, addressed by its sender."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("type IN ('offer', 'answer', 'candidate')", name="type"),
        Index("idx_messages_peer_timestamp", "peer_id", "timestamp"),
        Index("idx_messages_timestamp", "timestamp"),
    )

    # SQLite only autoincrements INTEGER primary keys.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    peer_id: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
