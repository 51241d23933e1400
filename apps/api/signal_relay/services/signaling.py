"""Signaling protocol: joins, session resets and message intake."""
from __future__ import annotations

import json
import logging

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import clock
from ..core.config import settings
from ..models.message import MessageType
from ..repositories import messages as messages_repo
from ..repositories import peers as peers_repo
from ..schemas import signaling as schemas
from . import retention

logger = logging.getLogger(__name__)


def resolve_role(payload: schemas.SignalingRequest) -> schemas.PeerRole | None:
    """Return the joining peer's role, falling back to the host id prefix."""

    if payload.role is not None:
        return payload.role
    if settings.host_peer_prefix and payload.peer_id.startswith(settings.host_peer_prefix):
        return schemas.PeerRole.HOST
    return None


async def join(payload: schemas.SignalingRequest, session: AsyncSession) -> schemas.JoinResponse:
    """Register a peer and, when it opens a new session, wipe the previous one.

    A host always starts a fresh session. A peer of unknown role does so only
    when it is the sole active peer once registered.
    """

    role = resolve_role(payload)
    now = clock.now_ms()
    active_since = now - settings.active_peer_window_seconds * 1000

    async with session.begin():
        await peers_repo.upsert(session, peer_id=payload.peer_id, now=now)
        peer_count = await peers_repo.count_active(session, seen_after=active_since)

        reset = role is schemas.PeerRole.HOST or (role is None and peer_count == 1)
        if reset:
            cleared_peers = await peers_repo.delete_others(session, peer_id=payload.peer_id)
            cleared_messages = await messages_repo.delete_all(session)
            peer_count = 1
            logger.info(
                "Session reset by %s: cleared %s peers and %s messages",
                payload.peer_id,
                cleared_peers,
                cleared_messages,
            )

    if role is schemas.PeerRole.HOST:
        is_initiator = True
    elif role is schemas.PeerRole.GUEST:
        is_initiator = False
    else:
        is_initiator = peer_count == 1

    logger.info("Peer %s joined. Total active peers: %s", payload.peer_id, peer_count)
    await retention.sweep_safely(session)

    return schemas.JoinResponse(is_initiator=is_initiator, peer_count=peer_count)


async def store_message(payload: schemas.SignalingRequest, session: AsyncSession) -> schemas.AckResponse:
    """Persist an offer, answer or candidate under its sender."""

    if payload.type is schemas.SignalType.JOIN:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid message type")

    message_type = MessageType(payload.type.value)
    async with session.begin():
        await messages_repo.append(
            session,
            peer_id=payload.peer_id,
            message_type=message_type,
            data=json.dumps(payload.data),
            timestamp=clock.now_ms(),
        )

    logger.info("Stored %s from %s", message_type.value, payload.peer_id)
    await retention.sweep_safely(session)
    return schemas.AckResponse()


async def handle(payload: schemas.SignalingRequest, session: AsyncSession) -> schemas.JoinResponse | schemas.AckResponse:
    """Dispatch a signaling envelope by type."""

    logger.debug("Signaling: %s from %s", payload.type.value, payload.peer_id)
    if payload.type is schemas.SignalType.JOIN:
        return await join(payload, session)
    return await store_message(payload, session)
