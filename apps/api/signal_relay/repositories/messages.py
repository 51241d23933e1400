"""Message store helpers."""
from __future__ import annotations

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from ..models.message import Message, MessageType


async def append(
    session: AsyncSession,
    *,
    peer_id: str,
    message_type: MessageType,
    data: str,
    timestamp: int,
) -> Message:
    """Insert one message. ``data`` is stored verbatim."""

    message = Message(peer_id=peer_id, type=message_type.value, data=data, timestamp=timestamp)
    session.add(message)
    await session.flush()
    return message


async def list_for_peer(
    session: AsyncSession,
    *,
    peer_id: str,
    since: int,
    before: int | None = None,
) -> list[Message]:
    """Return messages from other senders newer than ``since``, oldest first.

    With ``before`` set, only messages stamped strictly earlier are returned.
    """

    stmt: Select[tuple[Message]] = select(Message).where(Message.peer_id != peer_id, Message.timestamp > since)
    if before is not None:
        stmt = stmt.where(Message.timestamp < before)
    stmt = stmt.order_by(Message.timestamp.asc(), Message.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count(session: AsyncSession) -> int:
    result = await session.execute(select(func.count()).select_from(Message))
    return int(result.scalar_one())


async def delete_older_than(session: AsyncSession, *, cutoff: int) -> int:
    """Remove messages stamped before ``cutoff``."""

    result = await session.execute(delete(Message).where(Message.timestamp < cutoff))
    return result.rowcount or 0


async def delete_all(session: AsyncSession) -> int:
    result = await session.execute(delete(Message))
    return result.rowcount or 0


async def enforce_cap(session: AsyncSession, *, keep: int) -> int:
    """Keep only the newest ``keep`` messages by (timestamp, id)."""

    if keep <= 0:
        return 0

    kept = aliased(Message)
    newest = select(kept.id).order_by(kept.timestamp.desc(), kept.id.desc()).limit(keep)
    result = await session.execute(
        delete(Message).where(Message.id.not_in(newest)).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0
