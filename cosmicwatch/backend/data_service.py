"""High-level data service combining NeoWs, the cache, Sentry and the risk engine."""
from __future__ import annotations

from typing import Awaitable, Callable, Dict, Iterable, Optional, Sequence

import logging

from .alerts import DEFAULT_CLOSE_APPROACH_LD, AlertFact, collect_alert_facts
from .background import BackgroundTasks
from .cache import AsteroidCache
from .errors import CosmicWatchError, NotTracked
from .models import AsteroidRecord, DateRange, EngineStatus, FeedResult, JSONDict
from .nasa_client import NASAClient
from .risk_engine_client import RiskEngineClient
from .sentry_client import SentryClient

logger = logging.getLogger(__name__)

AlertSink = Callable[[AlertFact], Awaitable[None]]


class NeoDataService:
    """Coordinates upstream NEO data, the local cache and risk scoring.

    All collaborators are long-lived and injected once at startup.
    """

    def __init__(
        self,
        *,
        nasa_client: NASAClient,
        cache: AsteroidCache,
        risk_engine: RiskEngineClient,
        sentry_client: SentryClient,
        background: Optional[BackgroundTasks] = None,
        alert_sink: Optional[AlertSink] = None,
        health_max_attempts: int = 5,
        health_base_delay: float = 2.0,
        close_approach_ld: float = DEFAULT_CLOSE_APPROACH_LD,
    ) -> None:
        self.nasa_client = nasa_client
        self.cache = cache
        self.risk_engine = risk_engine
        self.sentry_client = sentry_client
        self.background = background or BackgroundTasks()
        self.alert_sink = alert_sink
        self.health_max_attempts = health_max_attempts
        self.health_base_delay = health_base_delay
        self.close_approach_ld = close_approach_ld

    # ------------------------------------------------------------------
    # Startup / shutdown
    # ------------------------------------------------------------------
    async def connect_risk_engine(self) -> EngineStatus:
        """Startup gate: raises EngineStartupError if the engine never comes up."""

        return await self.risk_engine.wait_until_healthy(
            max_attempts=self.health_max_attempts,
            base_delay=self.health_base_delay,
        )

    async def aclose(self, *, drain_timeout: Optional[float] = 10.0) -> None:
        await self.background.drain(timeout=drain_timeout)
        await self.nasa_client.aclose()
        await self.sentry_client.aclose()
        await self.risk_engine.aclose()
        await self.cache.store.dispose()

    # ------------------------------------------------------------------
    # NEO data
    # ------------------------------------------------------------------
    async def get_feed(self, start_date: str, end_date: str) -> FeedResult:
        """Fetch a feed and return it without waiting for cache writes."""

        try:
            feed = await self.nasa_client.fetch_feed(start_date, end_date)
        except CosmicWatchError as exc:
            logger.error("NeoWs feed request failed for %s..%s: %s", start_date, end_date, exc)
            raise

        records = feed.records()
        self.cache.populate_in_background(records, self.background)
        if self.alert_sink is not None:
            facts = collect_alert_facts(records, close_approach_ld=self.close_approach_ld)
            if facts:
                self.background.spawn(self._emit_alerts(facts), description=f"emit {len(facts)} alerts")
        return feed

    async def lookup(self, neo_id: str) -> AsteroidRecord:
        """Return one asteroid, from cache when fresh, otherwise from NeoWs."""

        cached = await self.cache.get(neo_id)
        if cached is not None:
            logger.debug("Cache hit for asteroid %s", neo_id)
            return cached

        try:
            record = await self.nasa_client.fetch_by_id(neo_id)
        except CosmicWatchError as exc:
            logger.error("NeoWs lookup failed for %s: %s", neo_id, exc)
            raise
        return await self.cache.upsert(record)

    # ------------------------------------------------------------------
    # Risk analysis
    # ------------------------------------------------------------------
    async def analyze_risk_enhanced(
        self,
        asteroids: Sequence[AsteroidRecord],
        date_range: Optional[DateRange] = None,
    ) -> JSONDict:
        logger.info("Sending %d asteroids to risk engine", len(asteroids))
        result = await self.risk_engine.analyze_bulk(asteroids, date_range)
        statistics = result.get("statistics") or {}
        logger.info(
            "Risk engine analysis complete (analyzed=%s, engine=%s, max_risk=%s)",
            result.get("total_analyzed"),
            result.get("engine"),
            statistics.get("max_risk_score"),
        )
        return result

    async def analyze_risk_single(self, asteroid: AsteroidRecord) -> JSONDict:
        return await self.risk_engine.analyze_single(asteroid)

    async def analyze_risk_sentry_enhanced(self, neo_id: str) -> JSONDict:
        """Score one asteroid with Sentry impact data when Sentry tracks it.

        Untracked objects fall back to the standard single-object analysis and
        are tagged ``sentry_available: False``. Any other Sentry failure is raised.
        """

        asteroid = await self.lookup(neo_id)
        try:
            impact_record = await self.sentry_client.fetch_impact_record(neo_id)
        except NotTracked:
            logger.info("Asteroid %s is not in Sentry; using standard analysis", neo_id)
            result = await self.analyze_risk_single(asteroid)
            return {**result, "sentry_available": False}

        logger.info(
            "Running Sentry-enhanced analysis for %s (%d virtual impactors)",
            neo_id,
            impact_record.total_virtual_impactors,
        )
        return await self.risk_engine.analyze_with_impact_data(asteroid, impact_record)

    async def analyze_feed_risk(self, start_date: str, end_date: str) -> JSONDict:
        feed = await self.get_feed(start_date, end_date)
        return await self.analyze_risk_enhanced(feed.records(), feed.date_range)

    async def lookup_risk(self, neo_id: str) -> JSONDict:
        asteroid = await self.lookup(neo_id)
        return await self.analyze_risk_single(asteroid)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    async def get_health_snapshot(self) -> Dict[str, object]:
        """Summarise the health of the store, the risk engine and background work."""

        services: Dict[str, Dict[str, object]] = {}

        try:
            await self.cache.store.ping()
            services["store"] = {"status": "ok"}
        except CosmicWatchError as exc:
            services["store"] = {"status": "error", "detail": str(exc)}

        try:
            status = await self.risk_engine.health_check()
            services["risk_engine"] = {
                "status": "ok",
                "engine": status.engine,
                "version": status.version,
            }
        except CosmicWatchError as exc:
            services["risk_engine"] = {"status": "degraded", "detail": str(exc)}

        if self.nasa_client.api_key == "DEMO_KEY":
            services["nasa_neo_api"] = {
                "status": "ok",
                "detail": "Using NASA DEMO_KEY; requests are heavily rate limited.",
            }
        else:
            services["nasa_neo_api"] = {"status": "ok"}

        services["background"] = {"status": "ok", "pending": self.background.pending}

        return {
            "status": _aggregate_overall_status(services.values()),
            "services": services,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _emit_alerts(self, facts: Sequence[AlertFact]) -> None:
        for fact in facts:
            try:
                await self.alert_sink(fact)
            except Exception:
                logger.exception("Alert sink failed for asteroid %s", fact.asteroid_id)


def _aggregate_overall_status(service_snapshots: Iterable[Dict[str, object]]) -> str:
    seen_statuses = {snapshot.get("status", "unknown") for snapshot in service_snapshots}
    if "error" in seen_statuses:
        return "error"
    if "degraded" in seen_statuses:
        return "degraded"
    if seen_statuses.issubset({"ok"}):
        return "ok"
    return "unknown"
