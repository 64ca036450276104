"""Pub/sub transports for collection change feeds."""

from __future__ import annotations

import logging

from .base import Broadcast
from .memory import InMemoryBroadcaster
from .redis import RedisBroadcaster

__all__ = ["Broadcast", "InMemoryBroadcaster", "RedisBroadcaster", "make_broadcaster"]

logger = logging.getLogger(__name__)


def make_broadcaster(redis_url: str | None) -> Broadcast:
    """Select Redis when a URL is configured, otherwise the in-memory broadcaster."""
    if redis_url:
        logger.info(f"Using Redis broadcaster: {redis_url}")
        return RedisBroadcaster(redis_url)
    logger.info("Using in-memory broadcaster (single process only)")
    return InMemoryBroadcaster()
