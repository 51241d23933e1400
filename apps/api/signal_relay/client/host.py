"""Host side of the handshake: answers every guest that offers."""
from __future__ import annotations

import logging
from uuid import uuid4

from ..schemas.rtc import IceServer
from ..schemas.signaling import JoinResponse, MessagesResponse, PeerRole, RelayedMessage
from .negotiation import Answer, Candidate, IceCandidate, NegotiationError, Offer, decode_message, encode_payload
from .peer import ConnectionFactory, PeerContext, PeerState, StateListener
from .polling import AdaptivePoller, PollingPolicy
from .relay import RelayClient, RelayError

logger = logging.getLogger(__name__)


class HostSession:
    """Keep one connection context per guest, keyed by the guest's peer id.

    Joining as host resets the relay session. Polling then runs until the
    host is closed, since new guests may arrive at any time.
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
        self.peer_id = peer_id or f"HOST_{uuid4()}"
        self.state = PeerState.IDLE
        self.contexts: dict[str, PeerContext] = {}
        self.ice_servers = list(ice_servers or [])
        self._factory = connection_factory
        self._on_state_change = on_state_change
        self.poller = AdaptivePoller(self._fetch, self.handle_messages, policy)

    @property
    def connected_guests(self) -> list[str]:
        return [peer_id for peer_id, ctx in self.contexts.items() if ctx.state is PeerState.CONNECTED]

    async def join(self) -> JoinResponse:
        """Join as host, which wipes any previous session on the relay."""

        response = await self.relay.join(self.peer_id, PeerRole.HOST)
        self.state = PeerState.JOINED
        logger.info("Host %s joined; relay session reset (peers=%s)", self.peer_id, response.peer_count)
        return response

    async def start(self, *, fetch_ice_servers: bool = True) -> JoinResponse:
        """Join, pick up ICE servers and start listening for guests."""

        response = await self.join()
        if fetch_ice_servers and not self.ice_servers:
            try:
                self.ice_servers = await self.relay.fetch_ice_servers()
            except RelayError as exc:
                logger.warning("Could not fetch ICE servers, continuing without TURN: %s", exc)
        self.poller.start()
        return response

    async def close(self) -> None:
        await self.poller.stop()
        for context in list(self.contexts.values()):
            await context.teardown(PeerState.CLOSED)
        self.contexts.clear()
        self.state = PeerState.CLOSED

    async def handle_messages(self, messages: list[RelayedMessage]) -> None:
        for message in messages:
            await self.handle_message(message)

    async def handle_message(self, message: RelayedMessage) -> None:
        try:
            signal = decode_message(message)
        except NegotiationError as exc:
            logger.warning("Ignoring undecodable message: %s", exc)
            return

        if isinstance(signal, Offer):
            await self._on_offer(signal)
        elif isinstance(signal, Candidate):
            await self._on_candidate(signal)
        elif isinstance(signal, Answer):
            logger.debug("Host ignores answer from %s", signal.sender)

    async def _on_offer(self, offer: Offer) -> None:
        guest_id = offer.sender
        logger.info("Received offer from guest: %s", guest_id)

        previous = self.contexts.pop(guest_id, None)
        if previous is not None:
            logger.info("Replacing connection context for %s", guest_id)
            await previous.teardown(PeerState.CLOSED)

        context = PeerContext(
            guest_id,
            self._factory,
            ice_servers=self.ice_servers,
            initial_state=PeerState.ANSWERING,
            send_candidate=self._send_candidate,
            on_state_change=self._context_state_changed,
        )
        self.contexts[guest_id] = context

        if not await context.apply_remote_description(offer.description):
            await context.teardown(PeerState.FAILED)
            return

        try:
            answer = await context.connection.create_answer()
            await context.connection.set_local_description(answer)
        except Exception as exc:  # noqa: BLE001 - negotiation errors are per operation
            logger.exception("Failed to create answer for %s: %s", guest_id, exc)
            await context.teardown(PeerState.FAILED)
            return

        local = context.connection.local_description or answer
        await self._send("answer", encode_payload(local, target_peer_id=guest_id))
        if context.state is PeerState.ANSWERING:
            await context.transition(PeerState.CONNECTED_PENDING)

    async def _on_candidate(self, candidate: Candidate) -> None:
        context = self.contexts.get(candidate.sender)
        if context is None:
            logger.warning("Ignoring ICE candidate for %s - no peer connection yet", candidate.sender)
            return
        await context.add_candidate(candidate.candidate)

    async def _context_state_changed(self, guest_id: str, state: PeerState) -> None:
        if state.is_terminal:
            logger.info("Guest disconnected: %s (%s)", guest_id, state.value)
            current = self.contexts.get(guest_id)
            if current is not None and current.state.is_terminal:
                del self.contexts[guest_id]
        if self._on_state_change is not None:
            await self._on_state_change(guest_id, state)

    async def _send_candidate(self, guest_id: str, candidate: IceCandidate) -> None:
        await self._send("candidate", encode_payload(candidate, target_peer_id=guest_id))

    async def _send(self, message_type: str, data: dict) -> None:
        try:
            await self.relay.send(self.peer_id, message_type, data)
        except RelayError as exc:
            logger.error("Send error: %s", exc)
            return
        self.poller.nudge()

    async def _fetch(self, since: int) -> MessagesResponse:
        return await self.relay.poll(self.peer_id, since)
