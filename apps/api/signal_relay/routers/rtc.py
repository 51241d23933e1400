"""ICE server credential endpoint."""
from __future__ import annotations

from fastapi import APIRouter, Body

from ..schemas.rtc import IceServer, TurnCredentialsRequest, TurnCredentialsResponse
from ..services import rtc as rtc_service

router = APIRouter()


@router.post("/turn-credentials", response_model=TurnCredentialsResponse, response_model_exclude_none=True)
async def create_turn_credentials(
    payload: TurnCredentialsRequest | None = Body(default=None),
) -> TurnCredentialsResponse:
    """Return ICE servers with time-limited TURN credentials."""

    request = payload or TurnCredentialsRequest()
    credentials = await rtc_service.issue_credentials(request.ttl, request.label)
    return TurnCredentialsResponse(
        ice_servers=[
            IceServer(urls=server.urls, username=server.username, credential=server.credential)
            for server in credentials.ice_servers
        ],
        ttl=credentials.ttl,
    )
