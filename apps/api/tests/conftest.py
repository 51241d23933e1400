"""Shared fixtures: per-test SQLite relay, a ticking clock and fake WebRTC connections."""
from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from signal_relay.client.negotiation import IceCandidate, SessionDescription
from signal_relay.client.peer import ConnectionEvents
from signal_relay.core import clock as clock_module
from signal_relay.db.session import create_schema, get_session
from signal_relay.main import app
from signal_relay.schemas.rtc import IceServer
from signal_relay.schemas.signaling import JoinResponse, MessagesResponse

START_MS = 1_760_000_000_000


class FakeClock:
    """Returns a strictly increasing millisecond time on every call."""

    def __init__(self, start: int = START_MS, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        current = self.now
        self.now += self.step
        return current

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeConnection:
    """Records what the state machine does to a WebRTC connection."""

    def __init__(self, ice_servers: list[IceServer], events: ConnectionEvents) -> None:
        self.ice_servers = ice_servers
        self.events = events
        self.connection_state = "new"
        self.local: SessionDescription | None = None
        self.remote: SessionDescription | None = None
        self.applied: list[str] = []
        self.failing_candidates: set[str] = set()
        self.closed = False

    @property
    def local_description(self) -> SessionDescription | None:
        return self.local

    async def create_offer(self) -> SessionDescription:
        return SessionDescription(type="offer", sdp="v=0 offer")

    async def create_answer(self) -> SessionDescription:
        if self.remote is None:
            raise RuntimeError("cannot answer without a remote offer")
        if self.remote.sdp == "no-answer":
            raise RuntimeError("answer generation failed")
        return SessionDescription(type="answer", sdp="v=0 answer")

    async def set_local_description(self, description: SessionDescription) -> None:
        self.local = description

    async def set_remote_description(self, description: SessionDescription) -> None:
        if description.sdp == "broken":
            raise ValueError("unparseable sdp")
        self.remote = description

    async def add_ice_candidate(self, candidate: IceCandidate) -> None:
        if self.remote is None:
            raise RuntimeError("remote description not set")
        if candidate.candidate in self.failing_candidates:
            raise ValueError("bad candidate")
        self.applied.append(candidate.candidate)

    async def close(self) -> None:
        self.closed = True
        self.connection_state = "closed"

    async def emit_state(self, state: str) -> None:
        self.connection_state = state
        await self.events.on_state_change(state)

    async def emit_candidate(self, candidate: IceCandidate) -> None:
        await self.events.on_ice_candidate(candidate)


class FakeConnectionFactory:
    def __init__(self) -> None:
        self.connections: list[FakeConnection] = []

    def __call__(self, ice_servers: list[IceServer], events: ConnectionEvents) -> FakeConnection:
        connection = FakeConnection(ice_servers, events)
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> FakeConnection:
        return self.connections[-1]


class FakeRelay:
    """In-memory stand-in for ``RelayClient`` that records sends and serves queued polls."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []
        self.joined: list[tuple[str, object]] = []
        self.responses: list[MessagesResponse] = []
        self.polls: list[int] = []
        self.ice_servers: list[IceServer] = []

    async def join(self, peer_id: str, role=None) -> JoinResponse:
        self.joined.append((peer_id, role))
        return JoinResponse(is_initiator=len(self.joined) == 1, peer_count=len(self.joined))

    async def send(self, peer_id: str, message_type: str, data: dict) -> None:
        self.sent.append((peer_id, message_type, data))

    async def poll(self, peer_id: str, since: int) -> MessagesResponse:
        self.polls.append(since)
        if self.responses:
            return self.responses.pop(0)
        return MessagesResponse(messages=[], timestamp=since + 1000)

    async def fetch_ice_servers(self, ttl: int | None = None) -> list[IceServer]:
        return list(self.ice_servers)


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    ticking = FakeClock()
    monkeypatch.setattr(clock_module, "now_ms", ticking)
    return ticking


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'relay.db'}")
    await create_schema(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncIterator[AsyncSession]:
    async with session_factory() as db_session:
        yield db_session


@pytest_asyncio.fixture
async def client(session_factory, fake_clock) -> AsyncIterator[AsyncClient]:
    async def override_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_session] = override_session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.clear()


@pytest.fixture
def connection_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def fake_relay() -> FakeRelay:
    return FakeRelay()
