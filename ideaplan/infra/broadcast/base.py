"""Abstract base class for broadcasting implementations."""

from __future__ import annotations

import abc
from typing import AsyncContextManager, AsyncIterator


class Broadcast(abc.ABC):
    """Abstract pub/sub broadcasting interface for collection change feeds."""

    @abc.abstractmethod
    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to a channel."""
        ...

    @abc.abstractmethod
    def subscribe(self, channel: str) -> AsyncContextManager[AsyncIterator[str]]:
        """
        Subscribe to a channel.

        Returns an async context manager. The subscription is registered
        before the context is entered, so messages published after entry are
        never missed. The yielded iterator ends when the broadcaster closes;
        leaving the context unsubscribes.
        """
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        """Close the broadcaster and cleanup resources."""
        ...
