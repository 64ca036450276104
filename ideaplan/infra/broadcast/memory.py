"""In-memory broadcaster implementation for development and testing."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

from .base import Broadcast

logger = logging.getLogger(__name__)

_CLOSED = object()


class InMemoryBroadcaster(Broadcast):
    """Simple per-process broadcaster: good for dev and unit tests."""

    def __init__(self, max_queue_size: int = 1000) -> None:
        self._channels: Dict[str, List[asyncio.Queue]] = {}
        self._max_queue_size = max_queue_size
        self._closed = False

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to all subscribers of a channel."""
        if self._closed:
            return
        queues = self._channels.get(channel)
        if not queues:
            return
        for q in list(queues):
            try:
                q.put_nowait(message)
            except asyncio.QueueFull:
                # Drop message; consumers should keep up
                logger.warning(
                    f"Dropped message for channel {channel}: queue full "
                    f"(subscriber not keeping up with message rate)"
                )

    @asynccontextmanager
    async def subscribe(self, channel: str) -> AsyncIterator[AsyncIterator[str]]:
        """Register a queue for the channel and yield an iterator over it."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._channels.setdefault(channel, []).append(q)
        try:
            yield self._drain(q)
        finally:
            subs = self._channels.get(channel, [])
            if q in subs:
                subs.remove(q)
            if not subs:
                self._channels.pop(channel, None)

    async def _drain(self, q: asyncio.Queue) -> AsyncIterator[str]:
        while not self._closed:
            msg = await q.get()
            if msg is _CLOSED:
                break
            yield msg

    def subscriber_count(self, channel: str) -> int:
        return len(self._channels.get(channel, []))

    async def close(self) -> None:
        """Close the broadcaster and wake up any waiting subscribers."""
        self._closed = True
        for queues in self._channels.values():
            for q in queues:
                try:
                    q.put_nowait(_CLOSED)
                except asyncio.QueueFull:
                    # _closed ends the drain loop once the backlog is consumed
                    continue
        self._channels.clear()
