"""Data contracts for ICE server credential issuance."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TurnCredentialsRequest(BaseModel):
    ttl: int | None = Field(default=None, ge=1, description="Requested credential lifetime in seconds")
    label: str | None = Field(default=None, max_length=64, description="Optional peer label for the username")


class IceServer(BaseModel):
    urls: list[str]
    username: str | None = None
    credential: str | None = None


class TurnCredentialsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ice_servers: list[IceServer] = Field(..., alias="iceServers")
    ttl: int = Field(..., ge=1, description="Seconds until the credentials expire")
