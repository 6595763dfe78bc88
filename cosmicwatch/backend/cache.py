"""Freshness-gated cache in front of the asteroid store."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

import logging

from .background import BackgroundTasks
from .errors import CosmicWatchError
from .models import AsteroidRecord
from .store import AsteroidStore


logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=60)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AsteroidCache:
    """Serve stored asteroids only while they are younger than ``ttl``."""

    def __init__(
        self,
        store: AsteroidStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self._clock = clock

    async def get(self, neo_id: str) -> Optional[AsteroidRecord]:
        """Return the cached record, or ``None`` when absent or stale."""

        record = await self.store.get(neo_id)
        if record is None:
            return None
        if not self.is_fresh(record):
            logger.debug("Cached asteroid %s is stale (fetched %s)", neo_id, record.last_fetched_at)
            return None
        return record

    def is_fresh(self, record: AsteroidRecord) -> bool:
        if record.last_fetched_at is None:
            return False
        return self._clock() - record.last_fetched_at < self.ttl

    async def upsert(self, record: AsteroidRecord) -> AsteroidRecord:
        return await self.store.upsert(record, self._clock())

    async def upsert_many(self, records: Iterable[AsteroidRecord]) -> int:
        """Upsert every record, logging and skipping the ones that fail."""

        written = 0
        failed = 0
        for record in records:
            try:
                await self.upsert(record)
            except CosmicWatchError as exc:
                failed += 1
                logger.warning("Failed to cache asteroid %s: %s", record.neo_reference_id, exc)
                continue
            written += 1
        if failed:
            logger.error("Cached %d asteroids, %d writes failed", written, failed)
        else:
            logger.info("Cached %d asteroids", written)
        return written

    def populate_in_background(self, records: Iterable[AsteroidRecord], background: BackgroundTasks) -> None:
        """Schedule :meth:`upsert_many` without waiting for it."""

        batch = list(records)
        if not batch:
            return
        background.spawn(self.upsert_many(batch), description=f"cache {len(batch)} asteroids")
