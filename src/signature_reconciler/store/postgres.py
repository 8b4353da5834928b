"""
Postgres entity store.

Keeps every entity as a JSONB document in a single ``entities`` table using
SQLAlchemy 2.0 async engine + asyncpg. A partial unique index on
``Deal.current_legal_agreement_id`` is what makes Deal materialization
at-most-once under concurrent writers: the losing insert raises
UniqueConstraintError and the caller re-reads the winner.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ..errors import UniqueConstraintError, wrap_store_error
from ..utils import utc_now, uuid7
from .base import DEAL, NEWEST_FIRST, EntityStore

logger = structlog.get_logger(__name__)

_SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS entities (
        entity_type TEXT NOT NULL,
        id TEXT NOT NULL,
        data JSONB NOT NULL,
        created_date TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_date TIMESTAMPTZ,
        PRIMARY KEY (entity_type, id)
    )
    """,
    f"""
    CREATE UNIQUE INDEX IF NOT EXISTS deal_current_legal_agreement_unique
        ON entities ((data->>'current_legal_agreement_id'))
        WHERE entity_type = '{DEAL}'
          AND data->>'current_legal_agreement_id' IS NOT NULL
    """,
    """
    CREATE INDEX IF NOT EXISTS entities_data_gin
        ON entities USING GIN (data jsonb_path_ops)
    """,
)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Hosted Postgres URLs often include ``channel_binding`` and ``sslmode``,
    which are libpq parameters that asyncpg rejects.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalize_driver(url: str) -> str:
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


def _to_jsonb(value: dict[str, Any]) -> str:
    return json.dumps(value, default=str)


def _build_filter(
    entity: str,
    criteria: dict[str, Any],
    order_by: str | None,
    limit: int | None,
    exclude: dict[str, Any] | None = None,
) -> tuple[Any, dict[str, Any]]:
    """Build the SELECT for an equality filter.

    Non-null criteria use JSONB containment; null criteria match a missing
    or JSON-null field. Exclusions negate containment, and a null exclusion
    requires a non-empty field.
    """
    contained = {k: v for k, v in criteria.items() if v is not None}
    clauses = ['entity_type = :entity_type', 'data @> CAST(:contained AS jsonb)']
    params: dict[str, Any] = {'entity_type': entity, 'contained': _to_jsonb(contained)}

    for i, key in enumerate(k for k, v in criteria.items() if v is None):
        clauses.append(f'data->>:null_key_{i} IS NULL')
        params[f'null_key_{i}'] = key

    for i, (key, value) in enumerate((exclude or {}).items()):
        if value is None:
            clauses.append(f"COALESCE(data->>:present_key_{i}, '') <> ''")
            params[f'present_key_{i}'] = key
        else:
            clauses.append(f'NOT (data @> CAST(:excluded_{i} AS jsonb))')
            params[f'excluded_{i}'] = _to_jsonb({key: value})

    sql = f"SELECT data FROM entities WHERE {' AND '.join(clauses)}"
    if order_by == NEWEST_FIRST:
        sql += ' ORDER BY created_date DESC'
    else:
        sql += ' ORDER BY created_date ASC'
    if limit is not None:
        sql += ' LIMIT :limit'
        params['limit'] = limit
    return text(sql), params


class PostgresEntityStore(EntityStore):
    """
    Async Postgres EntityStore.

    Uses SQLAlchemy 2.0 async engine with asyncpg for raw SQL execution.
    Driver errors are wrapped in StoreError; unique-index violations become
    UniqueConstraintError.
    """

    def __init__(self, database_url: str | None = None):
        """
        Initialize with a Postgres connection URL.

        Args:
            database_url: Postgres connection URL. 'postgres://' and
                          'postgresql://' URLs are converted to use asyncpg.
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url

    async def connect(self, database_url: str | None = None) -> None:
        """
        Create the async engine. Idempotent; no-op if already connected.

        Args:
            database_url: Override the URL from __init__.
        """
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        url = _normalize_driver(_sanitize_url(url))

        self._engine = create_async_engine(
            url,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
        )
        logger.info('postgres_store.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_store.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresEntityStore not connected; call connect() first')
        return self._engine

    async def setup_schema(self) -> None:
        """Create the entities table and its indexes if missing."""
        async with self.engine.begin() as conn:
            for statement in _SCHEMA_STATEMENTS:
                await conn.execute(text(statement))
        logger.info('postgres_store.schema_ready')

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_store.connectivity_check_failed')
            return False

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, entity: str, entity_id: str) -> dict[str, Any] | None:
        sql = text('SELECT data FROM entities WHERE entity_type = :entity_type AND id = :id')
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(sql, {'entity_type': entity, 'id': entity_id})
                row = result.first()
        except SQLAlchemyError as e:
            raise wrap_store_error(e, {'entity': entity, 'id': entity_id}) from e
        return dict(row[0]) if row is not None else None

    async def filter(
        self,
        entity: str,
        criteria: dict[str, Any],
        order_by: str | None = None,
        limit: int | None = None,
        exclude: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        sql, params = _build_filter(entity, criteria, order_by, limit, exclude)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(sql, params)
                rows = result.all()
        except SQLAlchemyError as e:
            raise wrap_store_error(e, {'entity': entity, 'criteria': criteria}) from e
        return [dict(row[0]) for row in rows]

    # =========================================================================
    # Writes
    # =========================================================================

    async def create(self, entity: str, data: dict[str, Any]) -> dict[str, Any]:
        now = utc_now()
        record = dict(data)
        record['id'] = record.get('id') or str(uuid7())
        record.setdefault('created_date', now.isoformat())

        sql = text("""
            INSERT INTO entities (entity_type, id, data, created_date)
            VALUES (:entity_type, :id, CAST(:data AS jsonb), :created_date)
        """)
        params = {
            'entity_type': entity,
            'id': record['id'],
            'data': _to_jsonb(record),
            'created_date': now,
        }
        try:
            async with self.engine.begin() as conn:
                await conn.execute(sql, params)
        except IntegrityError as e:
            raise UniqueConstraintError(
                f"{entity} violates a unique key",
                context={'entity': entity, 'original_error': str(e)},
            ) from e
        except SQLAlchemyError as e:
            raise wrap_store_error(e, {'entity': entity}) from e

        logger.debug('postgres_store.created', entity=entity, id=record['id'])
        return record

    async def update(
        self,
        entity: str,
        entity_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any] | None:
        sql = text("""
            UPDATE entities
            SET data = data || CAST(:fields AS jsonb), updated_date = :updated_date
            WHERE entity_type = :entity_type AND id = :id
            RETURNING data
        """)
        params = {
            'entity_type': entity,
            'id': entity_id,
            'fields': _to_jsonb(fields),
            'updated_date': utc_now(),
        }
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(sql, params)
                row = result.first()
        except SQLAlchemyError as e:
            raise wrap_store_error(e, {'entity': entity, 'id': entity_id}) from e
        return dict(row[0]) if row is not None else None

    async def delete(self, entity: str, entity_id: str) -> bool:
        sql = text("""
            DELETE FROM entities
            WHERE entity_type = :entity_type AND id = :id
            RETURNING id
        """)
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(sql, {'entity_type': entity, 'id': entity_id})
                row = result.first()
        except SQLAlchemyError as e:
            raise wrap_store_error(e, {'entity': entity, 'id': entity_id}) from e
        return row is not None
