"""Peer-side signaling: relay client, polling loop and handshake state machines."""
from .guest import GuestSession
from .host import HostSession
from .negotiation import Answer, Candidate, IceCandidate, NegotiationError, Offer, SessionDescription, Signal
from .peer import ConnectionEvents, ConnectionFactory, PeerConnection, PeerContext, PeerState
from .polling import AdaptivePoller, PollingPolicy
from .relay import RelayClient, RelayError

__all__ = [
    "AdaptivePoller",
    "Answer",
    "Candidate",
    "ConnectionEvents",
    "ConnectionFactory",
    "GuestSession",
    "HostSession",
    "IceCandidate",
    "NegotiationError",
    "Offer",
    "PeerConnection",
    "PeerContext",
    "PeerState",
    "PollingPolicy",
    "RelayClient",
    "RelayError",
    "SessionDescription",
    "Signal",
]
