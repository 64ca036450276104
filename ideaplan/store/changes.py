"""Change events published on every store write, relayed over a Broadcast."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, FrozenSet, Optional, Union

from ideaplan.infra.broadcast.base import Broadcast

if TYPE_CHECKING:
    from .base import Where

logger = logging.getLogger(__name__)

Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class ChangeEvent:
    type: str  # INSERT | UPDATE | DELETE
    table: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

    @property
    def record(self) -> Optional[Dict[str, Any]]:
        """Row the event is about: the new image, or the old one for deletes."""
        return self.new if self.new is not None else self.old

    def to_json(self) -> str:
        return json.dumps(
            {"type": self.type, "table": self.table, "new": self.new, "old": self.old},
            default=_json_default,
        )

    @classmethod
    def from_json(cls, raw: str) -> "ChangeEvent":
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Change event must be a JSON object, got {type(data).__name__}")
        return cls(
            type=str(data["type"]),
            table=str(data["table"]),
            new=data.get("new"),
            old=data.get("old"),
        )


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class ChangeFeed:
    """Publishes per-row change events and runs filtered subscriptions."""

    def __init__(self, broadcaster: Broadcast, channel_prefix: str = "changes:") -> None:
        self._bc = broadcaster
        self._prefix = channel_prefix

    def channel(self, table: str) -> str:
        return f"{self._prefix}{table}"

    async def publish(self, event: ChangeEvent) -> None:
        """Broadcast an event. The write is already committed, so failures only log."""
        try:
            await self._bc.publish(self.channel(event.table), event.to_json())
        except Exception as e:
            logger.error(
                "Failed to broadcast %s on %s: %s", event.type, event.table, e, exc_info=True
            )

    async def subscribe(
        self,
        table: str,
        where: "Where",
        event_types: FrozenSet[str],
        callback: ChangeCallback,
    ) -> Unsubscribe:
        channel = self.channel(table)
        ready = asyncio.Event()

        async def pump() -> None:
            async with self._bc.subscribe(channel) as messages:
                ready.set()
                async for raw in messages:
                    try:
                        event = ChangeEvent.from_json(raw)
                    except (ValueError, KeyError) as e:
                        logger.warning("Ignoring malformed change event on %s: %s", channel, e)
                        continue
                    if event.type not in event_types or not where.matches(event.record):
                        continue
                    try:
                        result = callback(event)
                        if inspect.isawaitable(result):
                            await result
                    except Exception:
                        logger.exception("Change callback failed for %s", channel)

        task = asyncio.create_task(pump(), name=f"change-feed:{channel}")
        waiter = asyncio.create_task(ready.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if not ready.is_set():
            # pump died before subscribing; surface its error
            waiter.cancel()
            task.result()
            raise RuntimeError(f"Subscription to {channel} ended before it started")

        closed = False

        def unsubscribe() -> None:
            nonlocal closed
            if closed:
                return
            closed = True
            task.cancel()

        return unsubscribe
