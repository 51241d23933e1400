"""Signaling intake and message delivery endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..schemas import signaling as schemas
from ..services import delivery as delivery_service
from ..services import signaling as signaling_service

router = APIRouter()


@router.post("/signaling", response_model=schemas.JoinResponse | schemas.AckResponse)
async def post_signal(
    payload: schemas.SignalingRequest,
    session: AsyncSession = Depends(get_session),
) -> schemas.JoinResponse | schemas.AckResponse:
    """Register a peer or store an offer, answer or ICE candidate."""

    return await signaling_service.handle(payload, session)


@router.get("/messages", response_model=schemas.MessagesResponse)
async def get_messages(
    peer_id: str | None = Query(default=None, alias="peerId"),
    since: int = Query(default=0),
    session: AsyncSession = Depends(get_session),
) -> schemas.MessagesResponse:
    """Return messages from other peers newer than the caller's watermark."""

    if not peer_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing peerId")

    return await delivery_service.fetch_messages(peer_id, since, session)
