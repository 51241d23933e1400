"""HTTP client for the relay's signaling, delivery and credential endpoints."""
from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..schemas.rtc import IceServer, TurnCredentialsResponse
from ..schemas.signaling import JoinResponse, MessagesResponse, PeerRole

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class RelayError(RuntimeError):
    """A relay call failed at the transport or protocol level."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RelayClient:
    """Thin async wrapper over the relay's HTTP endpoints."""

    def __init__(
        self,
        base_url: str = "",
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def join(self, peer_id: str, role: PeerRole | None = None) -> JoinResponse:
        body: dict[str, Any] = {"type": "join", "peerId": peer_id}
        if role is not None:
            body["role"] = role.value
        return _parse(JoinResponse, await self._request("POST", "/signaling", json=body))

    async def send(self, peer_id: str, message_type: str, data: Any) -> None:
        await self._request("POST", "/signaling", json={"type": message_type, "peerId": peer_id, "data": data})

    async def poll(self, peer_id: str, since: int) -> MessagesResponse:
        payload = await self._request("GET", "/messages", params={"peerId": peer_id, "since": since})
        return _parse(MessagesResponse, payload)

    async def fetch_ice_servers(self, ttl: int | None = None) -> list[IceServer]:
        body = {"ttl": ttl} if ttl is not None else {}
        payload = await self._request("POST", "/turn-credentials", json=body)
        return _parse(TurnCredentialsResponse, payload).ice_servers

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise RelayError(f"{method} {url} failed: {exc}") from exc

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if response.status_code >= 400:
            raise RelayError(
                f"{method} {url} returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RelayError(f"{method} {url} returned invalid JSON") from exc


def _parse(model: type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise RelayError(f"unexpected relay response for {model.__name__}: {exc.error_count()} errors") from exc
