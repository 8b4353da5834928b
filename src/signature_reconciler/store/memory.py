"""
In-process entity store.

Used by the test suite and for local runs without Postgres. Records are
deep-copied on the way in and out so callers never share mutable state with
the store, which keeps it honest about the no-shared-state contract the real
backend has.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from typing import Any

from ..errors import UniqueConstraintError
from ..utils import utc_now, uuid7
from .base import NEWEST_FIRST, UNIQUE_KEYS, EntityStore


class InMemoryEntityStore(EntityStore):
    """Dict-backed EntityStore with unique-key enforcement on create."""

    def __init__(self, unique_keys: dict[str, tuple[str, ...]] | None = None):
        self._records: dict[str, dict[str, dict[str, Any]]] = {}
        self._order: dict[tuple[str, str], int] = {}
        self._seq = itertools.count()
        self._unique_keys = UNIQUE_KEYS if unique_keys is None else unique_keys
        self._lock = asyncio.Lock()

    def seed(self, entity: str, *records: dict[str, Any]) -> None:
        """Insert records verbatim (tests and fixtures). Each must carry an ``id``."""
        table = self._records.setdefault(entity, {})
        for record in records:
            record = copy.deepcopy(record)
            record.setdefault('created_date', utc_now().isoformat())
            table[record['id']] = record
            self._order[(entity, record['id'])] = next(self._seq)

    def all(self, entity: str) -> list[dict[str, Any]]:
        """Every record of ``entity`` in insertion order."""
        table = self._records.get(entity, {})
        return [
            copy.deepcopy(r)
            for r in sorted(table.values(), key=lambda r: self._order[(entity, r['id'])])
        ]

    async def get(self, entity: str, entity_id: str) -> dict[str, Any] | None:
        record = self._records.get(entity, {}).get(entity_id)
        return copy.deepcopy(record) if record is not None else None

    async def filter(
        self,
        entity: str,
        criteria: dict[str, Any],
        order_by: str | None = None,
        limit: int | None = None,
        exclude: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        table = self._records.get(entity, {})
        matches = [
            r for r in table.values()
            if _matches(r, criteria) and not _excluded(r, exclude or {})
        ]
        if order_by == NEWEST_FIRST:
            matches.sort(
                key=lambda r: (r.get('created_date') or '', self._order[(entity, r['id'])]),
                reverse=True,
            )
        else:
            matches.sort(key=lambda r: self._order[(entity, r['id'])])
        if limit is not None:
            matches = matches[:limit]
        return [copy.deepcopy(r) for r in matches]

    async def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        async with self._lock:
            table = self._records.setdefault(entity, {})
            for key in self._unique_keys.get(entity, ()):
                value = data.get(key)
                if value is None:
                    continue
                if any(r.get(key) == value for r in table.values()):
                    raise UniqueConstraintError(
                        f"{entity}.{key} must be unique",
                        context={'entity': entity, 'key': key, 'value': value},
                    )

            record = copy.deepcopy(data)
            record['id'] = record.get('id') or str(uuid7())
            record.setdefault('created_date', utc_now().isoformat())
            table[record['id']] = record
            self._order[(entity, record['id'])] = next(self._seq)
            return copy.deepcopy(record)

    async def update(
        self,
        entity: str,
        entity_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        record = self._records.get(entity, {}).get(entity_id)
        if record is None:
            return None
        record.update(copy.deepcopy(fields))
        record['updated_date'] = utc_now().isoformat()
        return copy.deepcopy(record)

    async def delete(self, entity: str, entity_id: str) -> bool:
        table = self._records.get(entity, {})
        if entity_id not in table:
            return False
        del table[entity_id]
        self._order.pop((entity, entity_id), None)
        return True


def _matches(record: dict[str, Any], criteria: dict[str, Any]) -> bool:
    return all(record.get(key) == value for key, value in criteria.items())


def _excluded(record: dict[str, Any], exclude: dict[str, Any]) -> bool:
    for key, value in exclude.items():
        if value is None:
            if record.get(key) in (None, ''):
                return True
        elif record.get(key) == value:
            return True
    return False
