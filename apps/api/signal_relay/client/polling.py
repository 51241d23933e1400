"""Adaptive polling loop for relay message delivery."""
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..schemas.signaling import MessagesResponse, RelayedMessage
from .relay import RelayError

logger = logging.getLogger(__name__)

FetchMessages = Callable[[int], Awaitable[MessagesResponse]]
HandleMessages = Callable[[list[RelayedMessage]], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class PollingPolicy:
    """Poll fast while traffic flows, back off geometrically while it is quiet."""

    fast_interval: float = 1.0
    max_interval: float = 5.0
    backoff_factor: float = 1.5
    empty_polls_before_backoff: int = 3

    def next_interval(self, current: float, empty_polls: int) -> float:
        if empty_polls == 0:
            return self.fast_interval
        if empty_polls > self.empty_polls_before_backoff:
            return min(current * self.backoff_factor, self.max_interval)
        return current


class AdaptivePoller:
    """Single cooperative task that polls the relay and hands messages to a handler.

    The watermark starts at 0 and advances to each response's ``timestamp``.
    Failed polls are logged and retried at the next tick.
    """

    def __init__(
        self,
        fetch: FetchMessages,
        handle: HandleMessages,
        policy: PollingPolicy | None = None,
    ) -> None:
        self._fetch = fetch
        self._handle = handle
        self.policy = policy or PollingPolicy()
        self.since = 0
        self.interval = self.policy.fast_interval
        self.empty_polls = 0
        self._task: asyncio.Task[None] | None = None
        self._wake = asyncio.Event()
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> int:
        """Fetch and handle one window. Returns the number of delivered messages."""

        try:
            response = await self._fetch(self.since)
        except RelayError as exc:
            logger.warning("Polling error: %s", exc)
            return 0

        if response.messages:
            self.empty_polls = 0
            self.interval = self.policy.fast_interval
            await self._handle(response.messages)
        else:
            self.empty_polls += 1
            self.interval = self.policy.next_interval(self.interval, self.empty_polls)

        self.since = response.timestamp
        return len(response.messages)

    def start(self) -> None:
        if self.running:
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run())
        logger.debug("Started polling")

    def nudge(self) -> None:
        """Return to the fast interval, e.g. right after sending a message."""

        self.empty_polls = 0
        self.interval = self.policy.fast_interval
        self._wake.set()

    async def stop(self) -> None:
        """Stop polling. Safe to call from inside a message handler."""

        self._stopping = True
        self._wake.set()
        task = self._task
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # The loop exits once the current window has been handled.
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.debug("Stopped polling")

    async def _run(self) -> None:
        while not self._stopping:
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001 - a bad window must not kill the loop
                logger.exception("Unhandled error while processing polled messages")
            if self._stopping:
                break
            self._wake.clear()
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
