"""Tests for per-remote-peer candidate queuing and teardown."""
from __future__ import annotations

import pytest

from signal_relay.client.negotiation import IceCandidate, SessionDescription
from signal_relay.client.peer import PeerContext, PeerState

OFFER = SessionDescription(type="offer", sdp="v=0 offer")


def candidate(name: str) -> IceCandidate:
    return IceCandidate(candidate=name, sdp_mid="0", sdp_mline_index=0)


@pytest.mark.asyncio
async def test_queued_candidates_flush_in_order_before_new_ones(connection_factory):
    context = PeerContext("GUEST_x", connection_factory)
    for name in ("c1", "c2", "c3"):
        await context.add_candidate(candidate(name))

    assert connection_factory.last.applied == []
    assert [c.candidate for c in context.pending_candidates] == ["c1", "c2", "c3"]

    assert await context.apply_remote_description(OFFER) is True
    await context.add_candidate(candidate("c4"))

    assert connection_factory.last.applied == ["c1", "c2", "c3", "c4"]
    assert context.pending_candidates == []


@pytest.mark.asyncio
async def test_bad_candidate_does_not_abort_the_context(connection_factory):
    context = PeerContext("GUEST_x", connection_factory)
    connection_factory.last.failing_candidates.add("bad")
    await context.add_candidate(candidate("c1"))
    await context.add_candidate(candidate("bad"))
    await context.add_candidate(candidate("c2"))

    await context.apply_remote_description(OFFER)
    await context.add_candidate(candidate("bad"))
    await context.add_candidate(candidate("c3"))

    assert connection_factory.last.applied == ["c1", "c2", "c3"]
    assert context.state is PeerState.JOINED


@pytest.mark.asyncio
async def test_failed_remote_description_keeps_candidates_queued(connection_factory):
    context = PeerContext("GUEST_x", connection_factory)
    await context.add_candidate(candidate("c1"))

    ok = await context.apply_remote_description(SessionDescription(type="offer", sdp="broken"))

    assert ok is False
    assert context.remote_description_set is False
    assert [c.candidate for c in context.pending_candidates] == ["c1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("connection_state", ["disconnected", "failed", "closed"])
async def test_terminal_connection_state_tears_down(connection_factory, connection_state):
    seen: list[tuple[str, PeerState]] = []

    async def listener(peer_id: str, state: PeerState) -> None:
        seen.append((peer_id, state))

    context = PeerContext("GUEST_x", connection_factory, on_state_change=listener)
    await context.add_candidate(candidate("c1"))

    await connection_factory.last.emit_state(connection_state)

    assert context.state.value == connection_state
    assert context.state.is_terminal
    assert context.pending_candidates == []
    assert connection_factory.last.closed is True
    assert seen == [("GUEST_x", PeerState(connection_state))]

    await connection_factory.last.emit_state("connected")
    assert context.state.value == connection_state


@pytest.mark.asyncio
async def test_local_candidates_are_forwarded(connection_factory):
    forwarded: list[tuple[str, str]] = []

    async def send_candidate(peer_id: str, ice: IceCandidate) -> None:
        forwarded.append((peer_id, ice.candidate))

    context = PeerContext("GUEST_x", connection_factory, send_candidate=send_candidate)
    await connection_factory.last.emit_candidate(candidate("local-1"))
    await context.teardown()
    await connection_factory.last.emit_candidate(candidate("local-2"))

    assert forwarded == [("GUEST_x", "local-1")]
