"""Tests for Redis broadcaster implementation."""

import asyncio
import os
import uuid

import pytest

from ideaplan.infra.broadcast.redis import RedisBroadcaster

REDIS_URL = os.getenv("REDIS_URL")

pytestmark = pytest.mark.skipif(not REDIS_URL, reason="REDIS_URL not set")


@pytest.mark.asyncio
async def test_redis_broadcast_roundtrip():
    """Messages published after subscribing are received via Redis."""
    bc = RedisBroadcaster(REDIS_URL)
    channel = f"test:redis:{uuid.uuid4().hex}"
    collected = []

    async def consume(messages):
        async for msg in messages:
            collected.append(msg)
            if len(collected) >= 2:
                break

    try:
        async with bc.subscribe(channel) as messages:
            await bc.publish(channel, "one")
            await bc.publish(channel, "two")
            await asyncio.wait_for(consume(messages), timeout=5.0)
    finally:
        await bc.close()

    assert collected == ["one", "two"]


@pytest.mark.asyncio
async def test_redis_multiple_subscribers():
    """Subscribers on separate connections receive the same messages."""
    bc1 = RedisBroadcaster(REDIS_URL)
    bc2 = RedisBroadcaster(REDIS_URL)
    publisher = RedisBroadcaster(REDIS_URL)
    channel = f"test:redis:{uuid.uuid4().hex}"

    async def consume(messages, collected):
        async for msg in messages:
            collected.append(msg)
            if len(collected) >= 2:
                break

    collected1, collected2 = [], []
    try:
        async with bc1.subscribe(channel) as m1, bc2.subscribe(channel) as m2:
            await publisher.publish(channel, "msg1")
            await publisher.publish(channel, "msg2")
            await asyncio.wait_for(
                asyncio.gather(consume(m1, collected1), consume(m2, collected2)),
                timeout=5.0,
            )
    finally:
        await bc1.close()
        await bc2.close()
        await publisher.close()

    assert collected1 == ["msg1", "msg2"]
    assert collected2 == ["msg1", "msg2"]
