"""Backend package for Cosmic Watch.

Exposes the NEO data clients, the cache and the orchestrating data service.
"""
from __future__ import annotations

from .alerts import AlertFact, collect_alert_facts, log_alert_sink
from .background import BackgroundTasks
from .cache import AsteroidCache
from .data_service import NeoDataService
from .errors import (
    CosmicWatchError,
    EngineStartupError,
    ImpactMonitoringError,
    ImpactMonitoringUnavailable,
    NotTracked,
    ScoringEngineError,
    ScoringEngineRejected,
    ScoringEngineUnavailable,
    StoreUnavailable,
    UpstreamError,
    UpstreamNotFound,
    UpstreamUnavailable,
)
from .models import (
    AsteroidRecord,
    DateRange,
    EngineStatus,
    FeedResult,
    ImpactMonitoringRecord,
    VirtualImpactor,
)
from .nasa_client import NASAClient
from .risk_engine_client import RiskEngineClient
from .sentry_client import SentryClient, reshape_for_engine
from .store import AsteroidStore, create_store_engine

__all__ = [
    "AlertFact",
    "AsteroidCache",
    "AsteroidRecord",
    "AsteroidStore",
    "BackgroundTasks",
    "CosmicWatchError",
    "DateRange",
    "EngineStartupError",
    "EngineStatus",
    "FeedResult",
    "ImpactMonitoringError",
    "ImpactMonitoringRecord",
    "ImpactMonitoringUnavailable",
    "NASAClient",
    "NeoDataService",
    "NotTracked",
    "RiskEngineClient",
    "ScoringEngineError",
    "ScoringEngineRejected",
    "ScoringEngineUnavailable",
    "SentryClient",
    "StoreUnavailable",
    "UpstreamError",
    "UpstreamNotFound",
    "UpstreamUnavailable",
    "VirtualImpactor",
    "collect_alert_facts",
    "create_store_engine",
    "log_alert_sink",
    "reshape_for_engine",
]
