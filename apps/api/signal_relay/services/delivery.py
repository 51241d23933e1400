"""Cursor-based message delivery for polling peers."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import clock
from ..repositories import messages as messages_repo
from ..repositories import peers as peers_repo
from ..schemas import signaling as schemas


async def fetch_messages(peer_id: str, since: int, session: AsyncSession) -> schemas.MessagesResponse:
    """Return messages from other peers newer than ``since`` and a fresh watermark.

    The window is closed at the millisecond read before the query: only
    messages stamped earlier are returned, and the watermark is the last
    millisecond of that window. A message stored later in the same
    millisecond is therefore picked up by the next poll. Quiet polls still
    move the cursor forward.
    """

    cutoff = clock.now_ms()
    async with session.begin():
        await peers_repo.touch(session, peer_id=peer_id, now=cutoff)
        rows = await messages_repo.list_for_peer(session, peer_id=peer_id, since=since, before=cutoff)

    return schemas.MessagesResponse(
        messages=[
            schemas.RelayedMessage(
                type=row.type,
                data=row.data,
                from_peer_id=row.peer_id,
                timestamp=row.timestamp,
            )
            for row in rows
        ],
        timestamp=max(since, cutoff - 1),
    )
