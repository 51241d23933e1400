"""Retention sweeper for the peer registry and message store.

The sweeper has no scheduler of its own: the signaling service runs it after
every join and every stored message, so idle deployments keep their last rows
until the next write or the next host reset.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import clock
from ..core.config import settings
from ..repositories import messages as messages_repo
from ..repositories import peers as peers_repo

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepResult:
    messages_deleted: int = 0
    peers_deleted: int = 0


async def sweep(session: AsyncSession, *, now: int | None = None) -> SweepResult:
    """Delete expired messages and inactive peers, then apply the message cap."""

    current = clock.now_ms() if now is None else now
    message_cutoff = current - settings.message_retention_seconds * 1000
    peer_cutoff = current - settings.peer_retention_seconds * 1000

    async with session.begin():
        expired = await messages_repo.delete_older_than(session, cutoff=message_cutoff)
        capped = await messages_repo.enforce_cap(session, keep=settings.max_stored_messages)
        peers_deleted = await peers_repo.delete_inactive(session, cutoff=peer_cutoff)

    result = SweepResult(messages_deleted=expired + capped, peers_deleted=peers_deleted)
    if result.messages_deleted or result.peers_deleted:
        logger.info(
            "Swept %s messages and %s inactive peers", result.messages_deleted, result.peers_deleted
        )
    return result


async def sweep_safely(session: AsyncSession) -> SweepResult | None:
    """Run :func:`sweep`, logging instead of raising on failure."""

    try:
        return await sweep(session)
    except Exception:  # noqa: BLE001 - sweeping never fails the triggering request
        logger.exception("Retention sweep failed")
        return None
