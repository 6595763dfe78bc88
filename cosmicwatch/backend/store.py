"""Durable asteroid store backed by SQLAlchemy's asyncio engine.

The store is a plain keyed upsert/read table. Freshness decisions live in
:mod:`cosmicwatch.backend.cache`; this module only persists what it is given.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Iterable, Optional

import asyncio
import logging

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Index,
    MetaData,
    String,
    Table,
    select,
    text,
)
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import JSON

from .errors import StoreUnavailable
from .models import AsteroidRecord


logger = logging.getLogger(__name__)

metadata = MetaData()

cached_asteroids_table = Table(
    "cached_asteroids",
    metadata,
    Column("neo_reference_id", String, primary_key=True),
    Column("name", String, nullable=False),
    Column("absolute_magnitude", Float, nullable=True),
    Column("is_hazardous", Boolean, nullable=False, default=False),
    Column("estimated_diameter_min", Float, nullable=True),
    Column("estimated_diameter_max", Float, nullable=True),
    Column("data_json", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("last_fetched_at", DateTime(timezone=True), nullable=False),
)

Index("idx_cached_asteroids_is_hazardous", cached_asteroids_table.c.is_hazardous)

# Columns replaced on conflict; created_at keeps the first-write time.
_REPLACED_COLUMNS = (
    "name",
    "absolute_magnitude",
    "is_hazardous",
    "estimated_diameter_min",
    "estimated_diameter_max",
    "data_json",
    "last_fetched_at",
)


def create_store_engine(
    url: str,
    *,
    pool_size: int = 20,
    pool_timeout: float = 5.0,
    pool_recycle: int = 30,
    echo: bool = False,
) -> AsyncEngine:
    """Create the async engine with a hard connection ceiling.

    SQLite shares one connection (StaticPool) so in-memory databases survive
    across sessions; every other backend gets a fixed-size pool with no
    overflow and a bounded acquisition timeout.
    """

    if url.startswith("sqlite"):
        engine_kwargs: Dict[str, Any] = {
            "echo": echo,
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        engine_kwargs = {
            "echo": echo,
            "pool_pre_ping": True,
            "pool_size": pool_size,
            "max_overflow": 0,
            "pool_timeout": pool_timeout,
            "pool_recycle": pool_recycle,
        }
    return create_async_engine(url, **engine_kwargs)


class AsteroidStore:
    """Keyed upsert/read access to the ``cached_asteroids`` table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._dialect = engine.dialect.name
        # A single shared SQLite connection cannot interleave transactions.
        self._serialize = asyncio.Lock() if self._dialect == "sqlite" else None

    @classmethod
    def from_url(cls, url: str, **engine_kwargs: Any) -> "AsteroidStore":
        return cls(create_store_engine(url, **engine_kwargs))

    async def create_schema(self) -> None:
        async with self._begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def ping(self) -> None:
        async with self._begin() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Keyed operations
    # ------------------------------------------------------------------
    async def get(self, neo_id: str) -> Optional[AsteroidRecord]:
        table = cached_asteroids_table
        async with self._begin() as conn:
            result = await conn.execute(select(table).where(table.c.neo_reference_id == neo_id))
            row = result.mappings().first()
        if row is None:
            return None
        return _row_to_record(row)

    async def upsert(self, record: AsteroidRecord, fetched_at: datetime) -> AsteroidRecord:
        async with self._begin() as conn:
            await conn.execute(self._upsert_statement(record, fetched_at))
        return record.stamped(fetched_at)

    async def upsert_many(self, records: Iterable[AsteroidRecord], fetched_at: datetime) -> int:
        """Write all records in one transaction, all or nothing.

        Bulk loads and imports use this. The cache path does not: it calls
        :meth:`upsert` per record so one bad row cannot drop the rest.
        """

        count = 0
        async with self._begin() as conn:
            for record in records:
                await conn.execute(self._upsert_statement(record, fetched_at))
                count += 1
        return count

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @asynccontextmanager
    async def _begin(self) -> AsyncIterator[AsyncConnection]:
        try:
            if self._serialize is None:
                async with self._engine.begin() as conn:
                    yield conn
            else:
                async with self._serialize:
                    async with self._engine.begin() as conn:
                        yield conn
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
            raise StoreUnavailable(f"asteroid store error: {exc}") from exc

    def _upsert_statement(self, record: AsteroidRecord, fetched_at: datetime):
        if self._dialect == "postgresql":
            insert = postgresql_insert
        elif self._dialect == "sqlite":
            insert = sqlite_insert
        else:
            raise StoreUnavailable(f"unsupported store dialect: {self._dialect}")

        stmt = insert(cached_asteroids_table).values(
            neo_reference_id=record.neo_reference_id,
            name=record.name,
            absolute_magnitude=record.absolute_magnitude_h,
            is_hazardous=record.is_potentially_hazardous,
            estimated_diameter_min=record.estimated_diameter_min_km,
            estimated_diameter_max=record.estimated_diameter_max_km,
            data_json=record.data,
            created_at=fetched_at,
            last_fetched_at=fetched_at,
        )
        return stmt.on_conflict_do_update(
            index_elements=[cached_asteroids_table.c.neo_reference_id],
            set_={column: stmt.excluded[column] for column in _REPLACED_COLUMNS},
        )


def _row_to_record(row: Any) -> AsteroidRecord:
    return AsteroidRecord(
        neo_reference_id=row["neo_reference_id"],
        name=row["name"],
        absolute_magnitude_h=row["absolute_magnitude"],
        is_potentially_hazardous=bool(row["is_hazardous"]),
        estimated_diameter_min_km=row["estimated_diameter_min"],
        estimated_diameter_max_km=row["estimated_diameter_max"],
        data=row["data_json"],
        last_fetched_at=_as_utc(row["last_fetched_at"]),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
