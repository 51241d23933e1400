"""Typed signaling payloads exchanged through the relay.

The relay stores ``data`` as opaque JSON text. Peers decode it here into
session descriptions and ICE candidates, keyed by the message ``type``.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..schemas.signaling import RelayedMessage


class NegotiationError(ValueError):
    """A delivered message could not be decoded into a signaling payload."""


class SessionDescription(BaseModel):
    """SDP offer or answer in the browser's ``RTCSessionDescriptionInit`` shape."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    sdp: str
    target_peer_id: str | None = Field(default=None, alias="targetPeerId")


class IceCandidate(BaseModel):
    """ICE candidate in the browser's ``RTCIceCandidateInit`` shape."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    candidate: str
    sdp_mid: str | None = Field(default=None, alias="sdpMid")
    sdp_mline_index: int | None = Field(default=None, alias="sdpMLineIndex")
    username_fragment: str | None = Field(default=None, alias="usernameFragment")
    target_peer_id: str | None = Field(default=None, alias="targetPeerId")


@dataclass(slots=True, frozen=True)
class Offer:
    sender: str
    description: SessionDescription
    timestamp: int = 0


@dataclass(slots=True, frozen=True)
class Answer:
    sender: str
    description: SessionDescription
    timestamp: int = 0


@dataclass(slots=True, frozen=True)
class Candidate:
    sender: str
    candidate: IceCandidate
    timestamp: int = 0


Signal = Union[Offer, Answer, Candidate]


def _load(data: Any) -> Any:
    if isinstance(data, str):
        try:
            return json.loads(data)
        except json.JSONDecodeError as exc:
            raise NegotiationError(f"payload is not JSON: {exc}") from exc
    return data


def decode_message(message: RelayedMessage) -> Signal:
    """Turn a delivered relay message into an ``Offer``, ``Answer`` or ``Candidate``."""

    payload = _load(message.data)
    try:
        if message.type == "offer":
            return Offer(message.from_peer_id, SessionDescription.model_validate(payload), message.timestamp)
        if message.type == "answer":
            return Answer(message.from_peer_id, SessionDescription.model_validate(payload), message.timestamp)
        if message.type == "candidate":
            return Candidate(message.from_peer_id, IceCandidate.model_validate(payload), message.timestamp)
    except ValidationError as exc:
        raise NegotiationError(f"malformed {message.type} from {message.from_peer_id}") from exc
    raise NegotiationError(f"unknown message type {message.type!r}")


def encode_payload(payload: SessionDescription | IceCandidate, target_peer_id: str | None = None) -> dict[str, Any]:
    """Serialize a description or candidate as relay ``data``, optionally addressed to one peer."""

    if target_peer_id is not None:
        payload = payload.model_copy(update={"target_peer_id": target_peer_id})
    return payload.model_dump(by_alias=True, exclude_none=True)


def addressed_to(payload: SessionDescription | IceCandidate, peer_id: str) -> bool:
    """Unaddressed payloads are for everyone; addressed ones only for their target."""

    return payload.target_peer_id is None or payload.target_peer_id == peer_id
