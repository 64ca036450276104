"""Redis broadcaster implementation for production use."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from .base import Broadcast

logger = logging.getLogger(__name__)


class RedisBroadcaster(Broadcast):
    """Redis Pub/Sub broadcaster, shared by every server instance."""

    def __init__(self, url: str) -> None:
        self._url = url
        self._pool: aioredis.Redis | None = None
        self._closed = False

    async def _ensure(self) -> aioredis.Redis:
        """Ensure Redis connection pool is initialized."""
        if self._pool is None:
            self._pool = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=10,
                socket_timeout=5,
                socket_connect_timeout=5,
            )
            logger.info(f"Redis broadcaster connected to {self._url}")
        return self._pool

    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to a Redis channel."""
        if self._closed:
            return
        redis = await self._ensure()
        await redis.publish(channel, message)

    @asynccontextmanager
    async def subscribe(self, channel: str) -> AsyncIterator[AsyncIterator[str]]:
        """Subscribe to a Redis channel before handing out the message iterator."""
        redis = await self._ensure()
        pubsub = redis.pubsub()
        await pubsub.subscribe(channel)
        logger.debug(f"Subscribed to Redis channel: {channel}")
        try:
            yield self._iterate(pubsub, channel)
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
                logger.debug(f"Unsubscribed from Redis channel: {channel}")
            except Exception as e:
                logger.error(f"Error unsubscribing from {channel}: {e}")

    async def _iterate(self, pubsub, channel: str) -> AsyncIterator[str]:
        while not self._closed:
            try:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=1.0
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error receiving from channel {channel}: {e}")
                await asyncio.sleep(0.1)
                continue
            if message and message.get("type") == "message":
                data = message.get("data")
                if data is not None:
                    yield str(data)
            else:
                await asyncio.sleep(0.01)

    async def close(self) -> None:
        """Close the Redis connection pool."""
        self._closed = True
        if self._pool is not None:
            try:
                await self._pool.aclose()
                logger.info("Redis broadcaster closed")
            except Exception as e:
                logger.error(f"Error closing Redis connection: {e}")
            self._pool = None
