import pytest

pytest.importorskip("aiortc")

from aiortc import RTCIceCandidate  # noqa: E402

from signal_relay.client.aiortc_adapter import AiortcConnection, to_rtc_candidate, to_rtc_ice_server  # noqa: E402
from signal_relay.client.negotiation import IceCandidate  # noqa: E402
from signal_relay.client.peer import ConnectionEvents  # noqa: E402
from signal_relay.schemas.rtc import IceServer  # noqa: E402


def test_browser_candidate_line_is_parsed():
    candidate = IceCandidate(
        candidate="candidate:842163049 1 udp 1677729535 203.0.113.7 54400 typ srflx raddr 0.0.0.0 rport 0",
        sdpMid="0",
        sdpMLineIndex=0,
    )

    rtc_candidate = to_rtc_candidate(candidate)

    assert isinstance(rtc_candidate, RTCIceCandidate)
    assert rtc_candidate.ip == "203.0.113.7"
    assert rtc_candidate.port == 54400
    assert rtc_candidate.type == "srflx"
    assert rtc_candidate.protocol == "udp"
    assert rtc_candidate.sdpMid == "0"
    assert rtc_candidate.sdpMLineIndex == 0


def test_turn_server_keeps_credentials():
    server = to_rtc_ice_server(IceServer(urls=["turn:turn.example.com:3478"], username="1:u", credential="secret"))

    assert server.urls == ["turn:turn.example.com:3478"]
    assert server.username == "1:u"
    assert server.credential == "secret"


@pytest.mark.asyncio
async def test_fresh_connection_has_no_local_description():
    async def ignore(_):
        return None

    connection = AiortcConnection(
        [IceServer(urls=["stun:stun.l.google.com:19302"])],
        ConnectionEvents(on_state_change=ignore, on_ice_candidate=ignore),
    )
    try:
        assert connection.connection_state == "new"
        assert connection.local_description is None
        await connection.add_ice_candidate(IceCandidate(candidate=""))
    finally:
        await connection.close()
