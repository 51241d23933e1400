"""Guest side of the handshake: one offer, one answering host."""
from __future__ import annotations

import logging
from collections import defaultdict, deque
from uuid import uuid4

from ..schemas.rtc import IceServer
from ..schemas.signaling import JoinResponse, MessagesResponse, PeerRole, RelayedMessage
from .negotiation import (
    Answer,
    Candidate,
    IceCandidate,
    NegotiationError,
    Offer,
    addressed_to,
    decode_message,
    encode_payload,
)
from .peer import ConnectionFactory, PeerContext, PeerState, StateListener
from .polling import AdaptivePoller, PollingPolicy
from .relay import RelayClient, RelayError

logger = logging.getLogger(__name__)


class GuestSession:
    """Offer a connection and bind to whichever peer answers it first.

    Until an answer arrives the guest cannot know which sender is its host,
    so candidates are held per sender. On the answer, the answering sender's
    candidates are applied in arrival order and the rest are dropped.
    Polling stops once the connection is up or has ended.
    """

    def __init__(
        self,
        relay: RelayClient,
        connection_factory: ConnectionFactory,
        *,
        peer_id: str | None = None,
        ice_servers: list[IceServer] | None = None,
        policy: PollingPolicy | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        self.relay = relay
        self.peer_id = peer_id or f"GUEST_{uuid4()}"
        self.ice_servers = list(ice_servers or [])
        self.context: PeerContext | None = None
        self.remote_peer_id: str | None = None
        self._state = PeerState.IDLE
        self._factory = connection_factory
        self._on_state_change = on_state_change
        self._unbound: defaultdict[str, deque[IceCandidate]] = defaultdict(deque)
        self.poller = AdaptivePoller(self._fetch, self.handle_messages, policy)

    @property
    def state(self) -> PeerState:
        if self.context is not None:
            return self.context.state
        return self._state

    async def join(self) -> JoinResponse:
        response = await self.relay.join(self.peer_id, PeerRole.GUEST)
        self._state = PeerState.JOINED
        logger.info("Guest %s joined (peers=%s)", self.peer_id, response.peer_count)
        return response

    async def start(self, *, fetch_ice_servers: bool = True) -> JoinResponse:
        """Join, pick up ICE servers and start polling for the host's answer."""

        if fetch_ice_servers and not self.ice_servers:
            try:
                self.ice_servers = await self.relay.fetch_ice_servers()
            except RelayError as exc:
                logger.warning("Could not fetch ICE servers, continuing without TURN: %s", exc)
        response = await self.join()
        self.poller.start()
        return response

    async def connect(self) -> bool:
        """Create the connection and send the offer. Returns ``False`` if no offer went out."""

        if self.context is not None:
            logger.debug("Guest %s already started negotiating", self.peer_id)
            return False

        # The host is unknown until it answers; the context is keyed by it then.
        context = PeerContext(
            "",
            self._factory,
            ice_servers=self.ice_servers,
            initial_state=PeerState.OFFERING,
            send_candidate=self._send_candidate,
            on_state_change=self._context_state_changed,
        )
        self.context = context

        try:
            offer = await context.connection.create_offer()
            await context.connection.set_local_description(offer)
        except Exception as exc:  # noqa: BLE001 - negotiation errors are per operation
            logger.exception("Failed to create offer: %s", exc)
            await context.teardown(PeerState.FAILED)
            return False

        local = context.connection.local_description or offer
        if not await self._send("offer", encode_payload(local)):
            return False
        if context.state is PeerState.OFFERING:
            await context.transition(PeerState.AWAITING_ANSWER)
        return True

    async def close(self) -> None:
        await self.poller.stop()
        if self.context is not None:
            await self.context.teardown(PeerState.CLOSED)
        self._unbound.clear()
        self._state = PeerState.CLOSED

    async def handle_messages(self, messages: list[RelayedMessage]) -> None:
        for message in messages:
            await self.handle_message(message)

    async def handle_message(self, message: RelayedMessage) -> None:
        try:
            signal = decode_message(message)
        except NegotiationError as exc:
            logger.warning("Ignoring undecodable message: %s", exc)
            return

        if isinstance(signal, Answer):
            await self._on_answer(signal)
        elif isinstance(signal, Candidate):
            await self._on_candidate(signal)
        elif isinstance(signal, Offer):
            logger.debug("Guest ignores offer from %s", signal.sender)

    async def _on_answer(self, answer: Answer) -> None:
        if not addressed_to(answer.description, self.peer_id):
            return
        context = self.context
        if context is None or self.remote_peer_id is not None:
            logger.debug("Ignoring answer from %s", answer.sender)
            return

        logger.info("Received answer from host %s", answer.sender)
        self.remote_peer_id = answer.sender
        context.remote_peer_id = answer.sender
        for candidate in self._unbound.pop(answer.sender, ()):
            context.queue_candidate(candidate)
        self._unbound.clear()

        if await context.apply_remote_description(answer.description):
            if context.state is PeerState.AWAITING_ANSWER:
                await context.transition(PeerState.CONNECTED_PENDING)

    async def _on_candidate(self, candidate: Candidate) -> None:
        if not addressed_to(candidate.candidate, self.peer_id):
            return
        if self.remote_peer_id is None:
            self._unbound[candidate.sender].append(candidate.candidate)
            logger.debug("Queued ICE candidate from %s - waiting for answer", candidate.sender)
            return
        if candidate.sender != self.remote_peer_id or self.context is None:
            logger.debug("Ignoring ICE candidate from %s", candidate.sender)
            return
        await self.context.add_candidate(candidate.candidate)

    async def _context_state_changed(self, remote_peer_id: str, state: PeerState) -> None:
        if state is PeerState.CONNECTED or state.is_terminal:
            logger.info("Polling stopped - connection %s", state.value)
            await self.poller.stop()
        if self._on_state_change is not None:
            await self._on_state_change(remote_peer_id, state)

    async def _send_candidate(self, _: str, candidate: IceCandidate) -> None:
        await self._send("candidate", encode_payload(candidate))

    async def _send(self, message_type: str, data: dict) -> bool:
        try:
            await self.relay.send(self.peer_id, message_type, data)
        except RelayError as exc:
            logger.error("Send error: %s", exc)
            return False
        self.poller.nudge()
        return True

    async def _fetch(self, since: int) -> MessagesResponse:
        return await self.relay.poll(self.peer_id, since)
