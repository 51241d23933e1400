"""Peer registry helpers."""
from __future__ import annotations

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.peer import Peer


async def get_by_id(session: AsyncSession, peer_id: str) -> Peer | None:
    """Return a peer row by identifier."""

    return await session.get(Peer, peer_id)


async def upsert(session: AsyncSession, *, peer_id: str, now: int) -> None:
    """Insert the peer, or overwrite its join and activity times if it already exists.

    Runs as a single INSERT .. ON CONFLICT statement so concurrent joins with
    the same id cannot collide on the primary key.
    """

    dialect = session.get_bind().dialect.name
    insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
    stmt = insert(Peer).values(peer_id=peer_id, joined_at=now, last_seen=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Peer.peer_id],
        set_={"joined_at": stmt.excluded.joined_at, "last_seen": stmt.excluded.last_seen},
    )
    await session.execute(stmt)


async def touch(session: AsyncSession, *, peer_id: str, now: int) -> bool:
    """Bump ``last_seen`` for a registered peer. Unknown peers are left unregistered."""

    result = await session.execute(update(Peer).where(Peer.peer_id == peer_id).values(last_seen=now))
    return bool(result.rowcount)


async def count_active(session: AsyncSession, *, seen_after: int) -> int:
    """Count peers whose last activity is newer than ``seen_after``."""

    result = await session.execute(select(func.count()).select_from(Peer).where(Peer.last_seen > seen_after))
    return int(result.scalar_one())


async def list_ids(session: AsyncSession) -> list[str]:
    """Return every registered peer id, oldest join first."""

    result = await session.execute(select(Peer.peer_id).order_by(Peer.joined_at.asc(), Peer.peer_id.asc()))
    return list(result.scalars().all())


async def delete_others(session: AsyncSession, *, peer_id: str) -> int:
    """Remove every peer except ``peer_id``."""

    result = await session.execute(delete(Peer).where(Peer.peer_id != peer_id))
    return result.rowcount or 0


async def delete_inactive(session: AsyncSession, *, cutoff: int) -> int:
    """Remove peers whose last activity is older than ``cutoff``."""

    result = await session.execute(delete(Peer).where(Peer.last_seen < cutoff))
    return result.rowcount or 0


async def delete_all(session: AsyncSession) -> int:
    result = await session.execute(delete(Peer))
    return result.rowcount or 0
