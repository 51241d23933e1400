"""Per-remote-peer connection context and its negotiation state."""
from __future__ import annotations

import enum
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

from ..schemas.rtc import IceServer
from .negotiation import IceCandidate, SessionDescription

logger = logging.getLogger(__name__)


class PeerState(str, enum.Enum):
    IDLE = "idle"
    JOINED = "joined"
    OFFERING = "offering"
    AWAITING_ANSWER = "awaiting-answer"
    ANSWERING = "answering"
    CONNECTED_PENDING = "connected-pending"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({PeerState.DISCONNECTED, PeerState.FAILED, PeerState.CLOSED})

# WebRTC ``connectionState`` values that move a context forward.
CONNECTION_STATE_MAP = {
    "connected": PeerState.CONNECTED,
    "disconnected": PeerState.DISCONNECTED,
    "failed": PeerState.FAILED,
    "closed": PeerState.CLOSED,
}


@dataclass(slots=True)
class ConnectionEvents:
    """Callbacks a connection fires back into its context."""

    on_state_change: Callable[[str], Awaitable[None]]
    on_ice_candidate: Callable[[IceCandidate], Awaitable[None]]


class PeerConnection(Protocol):
    """The WebRTC engine a context drives. Media handling lives behind it."""

    @property
    def connection_state(self) -> str: ...

    @property
    def local_description(self) -> SessionDescription | None: ...

    async def create_offer(self) -> SessionDescription: ...

    async def create_answer(self) -> SessionDescription: ...

    async def set_local_description(self, description: SessionDescription) -> None: ...

    async def set_remote_description(self, description: SessionDescription) -> None: ...

    async def add_ice_candidate(self, candidate: IceCandidate) -> None: ...

    async def close(self) -> None: ...


ConnectionFactory = Callable[[list[IceServer], ConnectionEvents], PeerConnection]
StateListener = Callable[[str, PeerState], Awaitable[None]]
CandidateSender = Callable[[str, IceCandidate], Awaitable[None]]


class PeerContext:
    """Connection to one remote peer plus the ICE candidates waiting on it.

    Candidates that arrive before the remote description is set are queued
    and applied, in arrival order, right after it is set. A candidate that
    fails to apply is logged and skipped.
    """

    def __init__(
        self,
        remote_peer_id: str,
        factory: ConnectionFactory,
        *,
        ice_servers: list[IceServer] | None = None,
        initial_state: PeerState = PeerState.JOINED,
        send_candidate: CandidateSender | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        self.remote_peer_id = remote_peer_id
        self.state = initial_state
        self._pending: deque[IceCandidate] = deque()
        self._remote_description_set = False
        self._send_candidate = send_candidate
        self._on_state_change = on_state_change
        self.connection = factory(
            list(ice_servers or []),
            ConnectionEvents(
                on_state_change=self.handle_connection_state,
                on_ice_candidate=self._on_local_candidate,
            ),
        )

    @property
    def remote_description_set(self) -> bool:
        return self._remote_description_set

    @property
    def pending_candidates(self) -> list[IceCandidate]:
        return list(self._pending)

    async def transition(self, state: PeerState) -> None:
        if state is self.state:
            return
        logger.debug("Peer %s: %s -> %s", self.remote_peer_id, self.state.value, state.value)
        self.state = state
        if self._on_state_change is not None:
            await self._on_state_change(self.remote_peer_id, state)

    def queue_candidate(self, candidate: IceCandidate) -> None:
        self._pending.append(candidate)

    async def add_candidate(self, candidate: IceCandidate) -> None:
        """Apply a remote candidate now, or queue it until the remote description is set."""

        if self.state.is_terminal:
            logger.debug("Dropping candidate for closed peer %s", self.remote_peer_id)
            return
        if not self._remote_description_set:
            self._pending.append(candidate)
            logger.debug("Queued ICE candidate for %s - waiting for remote description", self.remote_peer_id)
            return
        await self._apply_candidate(candidate)

    async def apply_remote_description(self, description: SessionDescription) -> bool:
        """Set the remote description and flush queued candidates. Returns ``False`` on failure."""

        try:
            await self.connection.set_remote_description(description)
        except Exception as exc:  # noqa: BLE001 - negotiation errors are per operation
            logger.exception("Failed to set remote description for %s: %s", self.remote_peer_id, exc)
            return False

        self._remote_description_set = True
        await self.flush_candidates()
        return True

    async def flush_candidates(self) -> int:
        """Apply every queued candidate in arrival order."""

        flushed = 0
        while self._pending:
            await self._apply_candidate(self._pending.popleft())
            flushed += 1
        return flushed

    async def handle_connection_state(self, connection_state: str) -> None:
        """Follow the connection's state; terminal states tear the context down."""

        logger.info("Connection state for %s: %s", self.remote_peer_id, connection_state)
        state = CONNECTION_STATE_MAP.get(connection_state)
        if state is None or self.state.is_terminal:
            return
        if state.is_terminal:
            await self.teardown(state)
            return
        await self.transition(state)

    async def teardown(self, state: PeerState = PeerState.CLOSED) -> None:
        """Close the connection, drop queued candidates and enter a terminal state."""

        if self.state.is_terminal:
            return
        self._pending.clear()
        await self.transition(state)
        try:
            await self.connection.close()
        except Exception as exc:  # noqa: BLE001 - teardown must finish
            logger.exception("Error closing connection to %s: %s", self.remote_peer_id, exc)

    async def _apply_candidate(self, candidate: IceCandidate) -> None:
        try:
            await self.connection.add_ice_candidate(candidate)
            logger.debug("Added ICE candidate for %s", self.remote_peer_id)
        except Exception as exc:  # noqa: BLE001 - one bad candidate must not abort the context
            logger.exception("Error adding ICE candidate for %s: %s", self.remote_peer_id, exc)

    async def _on_local_candidate(self, candidate: IceCandidate) -> None:
        if self._send_candidate is not None and not self.state.is_terminal:
            await self._send_candidate(self.remote_peer_id, candidate)
