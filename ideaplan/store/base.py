"""
Document store primitives.

Services talk to storage only through named collections: insert, filtered
select, update, delete, and change subscriptions. Rows are plain dicts with
timezone-aware UTC datetimes.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ideaplan.core.errors import NotFoundError, StoreError

from .changes import ChangeCallback, ChangeFeed, Unsubscribe

EVENT_TYPES = frozenset({"INSERT", "UPDATE", "DELETE"})

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda a, b: a == b,
    "gt": lambda a, b: a is not None and a > b,
    "gte": lambda a, b: a is not None and a >= b,
    "lt": lambda a, b: a is not None and a < b,
    "lte": lambda a, b: a is not None and a <= b,
    "in": lambda a, b: a in b,
}


class Where:
    """Conjunction of column predicates, e.g. Where().eq("plan_id", p).gte("last_seen_at", t)."""

    def __init__(self) -> None:
        self.clauses: List[Tuple[str, str, Any]] = []

    @classmethod
    def of(cls, **equals: Any) -> "Where":
        where = cls()
        for column, value in equals.items():
            where.eq(column, value)
        return where

    def _add(self, column: str, op: str, value: Any) -> "Where":
        self.clauses.append((column, op, value))
        return self

    def eq(self, column: str, value: Any) -> "Where":
        return self._add(column, "eq", value)

    def gt(self, column: str, value: Any) -> "Where":
        return self._add(column, "gt", value)

    def gte(self, column: str, value: Any) -> "Where":
        return self._add(column, "gte", value)

    def lt(self, column: str, value: Any) -> "Where":
        return self._add(column, "lt", value)

    def lte(self, column: str, value: Any) -> "Where":
        return self._add(column, "lte", value)

    def in_(self, column: str, values: Iterable[Any]) -> "Where":
        return self._add(column, "in", list(values))

    def matches(self, row: Optional[Dict[str, Any]]) -> bool:
        """Evaluate the filter against a row in Python."""
        if row is None:
            return False
        return all(_COMPARATORS[op](row.get(column), value) for column, op, value in self.clauses)

    def __repr__(self) -> str:
        return f"Where({self.clauses!r})"


@dataclass(frozen=True)
class Increment:
    """Patch value applied as `column = column + amount` inside the store."""

    amount: int = 1


@dataclass
class Selection:
    """Pending select; terminal coroutines run it against the owning collection."""

    collection: "Collection"
    where: Where
    order_by: List[Tuple[str, bool]] = field(default_factory=list)
    max_rows: Optional[int] = None

    def order(self, column: str, desc: bool = False) -> "Selection":
        self.order_by.append((column, desc))
        return self

    def limit(self, n: int) -> "Selection":
        self.max_rows = n
        return self

    async def list(self) -> List[Dict[str, Any]]:
        return await self.collection._run_select(self)

    async def maybe_single(self) -> Optional[Dict[str, Any]]:
        rows = await self.collection._run_select(self)
        if len(rows) > 1:
            raise StoreError(
                f"Expected at most one row from {self.collection.name}, got {len(rows)}"
            )
        return rows[0] if rows else None

    async def single(self) -> Dict[str, Any]:
        row = await self.maybe_single()
        if row is None:
            raise NotFoundError(f"No matching row in {self.collection.name}")
        return row


class Collection(abc.ABC):
    """One named collection of documents."""

    def __init__(self, name: str, changes: ChangeFeed) -> None:
        self.name = name
        self._changes = changes

    @abc.abstractmethod
    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a document (assigning `id` when absent) and return the stored row."""
        ...

    def select(self, where: Optional[Where] = None) -> Selection:
        return Selection(collection=self, where=where or Where())

    @abc.abstractmethod
    async def update(self, where: Where, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Apply the patch to every matching row and return the updated rows."""
        ...

    @abc.abstractmethod
    async def delete(self, where: Where) -> int:
        """Delete matching rows and return how many were removed."""
        ...

    @abc.abstractmethod
    async def _run_select(self, selection: Selection) -> List[Dict[str, Any]]:
        ...

    async def subscribe_changes(
        self,
        where: Where,
        event_types: Sequence[str],
        callback: ChangeCallback,
    ) -> Unsubscribe:
        """
        Deliver matching change events to `callback` until unsubscribed.

        The subscription is live when this coroutine returns. The returned
        callable tears it down and may be called any number of times.
        """
        wanted = frozenset(t.upper() for t in event_types)
        unknown = wanted - EVENT_TYPES
        if unknown:
            raise ValueError(f"Unknown change event types: {sorted(unknown)}")
        return await self._changes.subscribe(self.name, where, wanted, callback)


class DocumentStore(abc.ABC):
    """Entry point to the named collections."""

    @abc.abstractmethod
    def collection(self, name: str) -> Collection:
        """Get a collection by name; unknown names raise ValueError."""
        ...

    @abc.abstractmethod
    async def close(self) -> None:
        ...
