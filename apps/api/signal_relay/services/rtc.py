"""ICE server credential issuance.

TURN credentials follow the TURN REST scheme understood by coturn's
``use-auth-secret`` mode: the username carries the expiry time and the
credential is an HMAC of that username under the shared secret.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from secrets import token_urlsafe

from ..core import clock
from ..core.config import settings

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 60


@dataclass(slots=True)
class IceServerConfig:
    urls: list[str]
    username: str | None = None
    credential: str | None = None


@dataclass(slots=True)
class IceCredentials:
    ice_servers: list[IceServerConfig] = field(default_factory=list)
    ttl: int = 0


def clamp_ttl(requested: int | None) -> int:
    """Bound the requested lifetime to the configured limits."""

    ttl = requested or settings.turn_default_ttl_seconds
    return max(MIN_TTL_SECONDS, min(ttl, settings.turn_max_ttl_seconds))


def turn_password(secret: str, username: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), username.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


async def issue_credentials(ttl: int | None = None, label: str | None = None) -> IceCredentials:
    """Return STUN servers plus time-limited TURN credentials when TURN is configured."""

    lifetime = clamp_ttl(ttl)
    servers: list[IceServerConfig] = []
    if settings.stun_urls:
        servers.append(IceServerConfig(urls=list(settings.stun_urls)))

    if settings.turn_urls and settings.turn_shared_secret:
        expires_at = clock.now_ms() // 1000 + lifetime
        username = f"{expires_at}:{label or token_urlsafe(8)}"
        servers.append(
            IceServerConfig(
                urls=list(settings.turn_urls),
                username=username,
                credential=turn_password(settings.turn_shared_secret, username),
            )
        )
    elif settings.turn_urls:
        logger.warning("TURN urls configured without a shared secret; issuing STUN servers only")

    return IceCredentials(ice_servers=servers, ttl=lifetime)
