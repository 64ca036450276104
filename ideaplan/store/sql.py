"""SQLAlchemy-backed document store."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ideaplan.core.clock import as_utc
from ideaplan.core.db import Base
from ideaplan.core.errors import ConflictError, StoreError
from ideaplan.infra.broadcast.base import Broadcast

from .base import Collection, DocumentStore, Increment, Selection, Where
from .changes import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)


def _to_record(row: RowMapping) -> Dict[str, Any]:
    record = dict(row)
    for key, value in record.items():
        if isinstance(value, datetime):
            record[key] = as_utc(value)
    return record


class SqlCollection(Collection):
    def __init__(self, engine: Engine, table: Table, changes: ChangeFeed) -> None:
        super().__init__(table.name, changes)
        self._engine = engine
        self._table = table

    def _column(self, name: str):
        try:
            return self._table.c[name]
        except KeyError:
            raise ValueError(f"Unknown column {name!r} in {self.name}") from None

    def _clauses(self, where: Where) -> list:
        clauses = []
        for column_name, op, value in where.clauses:
            column = self._column(column_name)
            if op == "eq":
                clauses.append(column.is_(None) if value is None else column == value)
            elif op == "gt":
                clauses.append(column > value)
            elif op == "gte":
                clauses.append(column >= value)
            elif op == "lt":
                clauses.append(column < value)
            elif op == "lte":
                clauses.append(column <= value)
            elif op == "in":
                clauses.append(column.in_(value))
            else:
                raise ValueError(f"Unsupported operator {op!r}")
        return clauses

    def _values(self, patch: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for key, value in patch.items():
            column = self._column(key)
            values[key] = column + value.amount if isinstance(value, Increment) else value
        return values

    async def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        for key in doc:
            self._column(key)
        stmt = insert(self._table).values(**doc).returning(*self._table.c)
        try:
            with self._engine.begin() as conn:
                row = conn.execute(stmt).mappings().one()
        except IntegrityError as e:
            raise ConflictError(f"Duplicate or invalid row for {self.name}: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into {self.name} failed: {e}") from e
        record = _to_record(row)
        await self._changes.publish(ChangeEvent(type="INSERT", table=self.name, new=record))
        return record

    async def update(self, where: Where, patch: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not patch:
            raise ValueError("Empty patch")
        stmt = (
            update(self._table)
            .where(*self._clauses(where))
            .values(**self._values(patch))
            .returning(*self._table.c)
        )
        try:
            with self._engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        except IntegrityError as e:
            raise ConflictError(f"Update of {self.name} violates a constraint: {e.orig}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Update of {self.name} failed: {e}") from e
        records = [_to_record(row) for row in rows]
        for record in records:
            await self._changes.publish(ChangeEvent(type="UPDATE", table=self.name, new=record))
        return records

    async def delete(self, where: Where) -> int:
        stmt = delete(self._table).where(*self._clauses(where)).returning(*self._table.c)
        try:
            with self._engine.begin() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Delete from {self.name} failed: {e}") from e
        for row in rows:
            await self._changes.publish(
                ChangeEvent(type="DELETE", table=self.name, old=_to_record(row))
            )
        return len(rows)

    async def _run_select(self, selection: Selection) -> List[Dict[str, Any]]:
        stmt = select(self._table).where(*self._clauses(selection.where))
        for column_name, desc in selection.order_by:
            column = self._column(column_name)
            stmt = stmt.order_by(column.desc() if desc else column.asc())
        if selection.max_rows is not None:
            stmt = stmt.limit(selection.max_rows)
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Select from {self.name} failed: {e}") from e
        return [_to_record(row) for row in rows]


class SqlDocumentStore(DocumentStore):
    """
    Document store over the SQLAlchemy tables registered on Base.

    Every committed write publishes one ChangeEvent per affected row on
    `<channel_prefix><table>`.
    """

    def __init__(
        self, engine: Engine, broadcaster: Broadcast, channel_prefix: str = "changes:"
    ) -> None:
        # Import models so they're registered with Base
        from ideaplan.database import models  # noqa: F401

        self.engine = engine
        self.changes = ChangeFeed(broadcaster, channel_prefix)
        self._collections: Dict[str, SqlCollection] = {}

    def collection(self, name: str) -> SqlCollection:
        if name not in self._collections:
            table = Base.metadata.tables.get(name)
            if table is None:
                raise ValueError(f"Unknown collection: {name}")
            self._collections[name] = SqlCollection(self.engine, table, self.changes)
        return self._collections[name]

    async def close(self) -> None:
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"SqlDocumentStore(url={self.engine.url!r})"
