"""``PeerConnection`` backed by aiortc, for Python peers.

Requires the ``rtc`` extra. aiortc gathers ICE candidates while setting the
local description and embeds them in the SDP, so it never trickles
candidates through ``on_ice_candidate``.
"""
from __future__ import annotations

import logging

from aiortc import RTCConfiguration, RTCIceCandidate, RTCIceServer, RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp

from ..schemas.rtc import IceServer
from .negotiation import IceCandidate, SessionDescription
from .peer import ConnectionEvents

logger = logging.getLogger(__name__)


def to_rtc_ice_server(server: IceServer) -> RTCIceServer:
    return RTCIceServer(urls=list(server.urls), username=server.username, credential=server.credential)


def to_rtc_candidate(candidate: IceCandidate) -> RTCIceCandidate:
    """Parse a browser-style candidate line into an aiortc ``RTCIceCandidate``."""

    line = candidate.candidate
    if line.startswith("candidate:"):
        line = line[len("candidate:"):]
    rtc_candidate = candidate_from_sdp(line)
    rtc_candidate.sdpMid = candidate.sdp_mid
    rtc_candidate.sdpMLineIndex = candidate.sdp_mline_index
    return rtc_candidate


class AiortcConnection:
    def __init__(self, ice_servers: list[IceServer], events: ConnectionEvents) -> None:
        configuration = RTCConfiguration(iceServers=[to_rtc_ice_server(server) for server in ice_servers])
        self.pc = RTCPeerConnection(configuration=configuration)
        self._events = events

        @self.pc.on("connectionstatechange")
        async def _on_connection_state_change() -> None:
            await self._events.on_state_change(self.pc.connectionState)

    @property
    def connection_state(self) -> str:
        return self.pc.connectionState

    @property
    def local_description(self) -> SessionDescription | None:
        description = self.pc.localDescription
        if description is None:
            return None
        return SessionDescription(type=description.type, sdp=description.sdp)

    async def create_offer(self) -> SessionDescription:
        offer = await self.pc.createOffer()
        return SessionDescription(type=offer.type, sdp=offer.sdp)

    async def create_answer(self) -> SessionDescription:
        answer = await self.pc.createAnswer()
        return SessionDescription(type=answer.type, sdp=answer.sdp)

    async def set_local_description(self, description: SessionDescription) -> None:
        await self.pc.setLocalDescription(RTCSessionDescription(sdp=description.sdp, type=description.type))

    async def set_remote_description(self, description: SessionDescription) -> None:
        await self.pc.setRemoteDescription(RTCSessionDescription(sdp=description.sdp, type=description.type))

    async def add_ice_candidate(self, candidate: IceCandidate) -> None:
        if not candidate.candidate:
            logger.debug("End of remote candidates")
            return
        await self.pc.addIceCandidate(to_rtc_candidate(candidate))

    async def close(self) -> None:
        await self.pc.close()


def aiortc_connection_factory(ice_servers: list[IceServer], events: ConnectionEvents) -> AiortcConnection:
    return AiortcConnection(ice_servers, events)
