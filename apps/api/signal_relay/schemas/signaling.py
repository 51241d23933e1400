"""Data contracts for the signaling and delivery endpoints."""
from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SignalType(str, enum.Enum):
    JOIN = "join"
    OFFER = "offer"
    ANSWER = "answer"
    CANDIDATE = "candidate"


class PeerRole(str, enum.Enum):
    HOST = "host"
    GUEST = "guest"


class SignalingRequest(BaseModel):
    """Envelope posted to ``/signaling``."""

    model_config = ConfigDict(populate_by_name=True)

    type: SignalType
    peer_id: str = Field(..., alias="peerId", min_length=1, description="Sender peer id")
    data: Any = Field(default=None, description="Opaque SDP or ICE payload")
    role: PeerRole | None = Field(default=None, description="Explicit role for join requests")

    @model_validator(mode="after")
    def _require_payload(self) -> "SignalingRequest":
        # An explicit null is a payload; only a missing field is rejected.
        if self.type is not SignalType.JOIN and "data" not in self.model_fields_set:
            raise ValueError(f"data is required for {self.type.value} messages")
        return self


class JoinResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    is_initiator: bool = Field(..., alias="isInitiator")
    peer_count: int = Field(..., alias="peerCount", ge=0)


class AckResponse(BaseModel):
    success: bool = True


class RelayedMessage(BaseModel):
    """A stored message as seen by a polling peer."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    data: str = Field(..., description="Payload exactly as serialized by the relay")
    from_peer_id: str = Field(..., alias="fromPeerId")
    timestamp: int


class MessagesResponse(BaseModel):
    messages: list[RelayedMessage]
    timestamp: int = Field(..., description="Watermark to send back as ``since``")
