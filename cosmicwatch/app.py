"""Cosmic Watch Flask application entrypoint.

The views are deliberately thin: they parse query parameters, call the data
service on the shared event loop and wrap whatever comes back in the standard
response envelope.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Dict, Optional

import logging
import signal
import sys

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from .backend import (
    AsteroidCache,
    AsteroidStore,
    BackgroundTasks,
    CosmicWatchError,
    EngineStartupError,
    NASAClient,
    NeoDataService,
    RiskEngineClient,
    SentryClient,
    log_alert_sink,
)
from .config import Settings, get_settings
from .runtime import EventLoopThread


logger = logging.getLogger(__name__)

EXTENSION_KEY = "cosmicwatch"


def create_data_service(settings: Settings) -> NeoDataService:
    """Wire the long-lived clients and the store from settings."""

    store = AsteroidStore.from_url(
        settings.database_url,
        pool_size=settings.db_pool_size,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        echo=settings.db_echo,
    )
    return NeoDataService(
        nasa_client=NASAClient(
            settings.nasa_api_key,
            base_url=settings.nasa_base_url,
            timeout=settings.upstream_timeout,
        ),
        cache=AsteroidCache(store, ttl=timedelta(minutes=settings.cache_ttl_minutes)),
        risk_engine=RiskEngineClient(
            settings.risk_engine_url,
            api_prefix=settings.risk_engine_api_prefix,
            timeout=settings.risk_engine_timeout,
            health_timeout=settings.risk_engine_health_timeout,
        ),
        sentry_client=SentryClient(endpoint=settings.sentry_api_url, timeout=settings.upstream_timeout),
        background=BackgroundTasks(),
        alert_sink=log_alert_sink,
        health_max_attempts=settings.risk_engine_max_attempts,
        health_base_delay=settings.risk_engine_base_delay,
        close_approach_ld=settings.close_approach_ld,
    )


async def _bootstrap(service: NeoDataService) -> None:
    await service.cache.store.create_schema()
    logger.info("Asteroid store ready")
    await service.connect_risk_engine()


def create_app(
    settings: Optional[Settings] = None,
    *,
    service: Optional[NeoDataService] = None,
    runtime: Optional[EventLoopThread] = None,
) -> Flask:
    """Build the Flask app.

    Without an injected service this runs the startup sequence first: store
    schema, then the risk engine health gate. An unhealthy engine raises
    :class:`EngineStartupError` and no app is returned.
    """

    settings = settings or get_settings()
    runtime = (runtime or EventLoopThread()).start()

    if service is None:
        service = create_data_service(settings)
        try:
            runtime.run(_bootstrap(service))
        except CosmicWatchError:
            runtime.run(service.aclose(drain_timeout=0))
            runtime.stop()
            raise

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions[EXTENSION_KEY] = {
        "service": service,
        "runtime": runtime,
        "settings": settings,
    }
    CORS(app)
    _register_routes(app)
    return app


def shutdown_app(app: Flask) -> None:
    state = app.extensions.get(EXTENSION_KEY)
    if not state:
        return
    runtime: EventLoopThread = state["runtime"]
    settings: Settings = state["settings"]
    if runtime.running:
        runtime.run(state["service"].aclose(drain_timeout=settings.shutdown_drain_timeout))
        runtime.stop()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _run(work: Awaitable[Any]) -> Any:
    return current_app.extensions[EXTENSION_KEY]["runtime"].run(work)


def _service() -> NeoDataService:
    return current_app.extensions[EXTENSION_KEY]["service"]


def _today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def _date_range_args() -> Dict[str, str]:
    today = _today()
    return {
        "start_date": request.args.get("start_date") or today,
        "end_date": request.args.get("end_date") or today,
    }


def _success(data: Any, message: str, status: int = 200) -> Any:
    return jsonify({"success": True, "message": message, "data": data}), status


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
def _register_routes(app: Flask) -> None:
    @app.errorhandler(CosmicWatchError)
    def handle_backend_error(exc: CosmicWatchError) -> Any:
        if exc.is_dependency_failure:
            logger.warning("Request failed on dependency: %s", exc)
        body = {
            "success": False,
            "message": str(exc),
            "error": {
                "type": type(exc).__name__,
                "status_code": getattr(exc, "status_code", None),
            },
        }
        return jsonify(body), exc.http_status

    @app.route("/api/health", methods=["GET"])
    def health() -> Any:
        snapshot = _run(_service().get_health_snapshot())
        status = 200 if snapshot["status"] == "ok" else 503
        return jsonify(snapshot), status

    @app.route("/api/v1/neo/feed", methods=["GET"])
    def neo_feed() -> Any:
        args = _date_range_args()
        feed = _run(_service().get_feed(args["start_date"], args["end_date"]))
        return _success(feed.raw, "NEO feed retrieved successfully")

    @app.route("/api/v1/neo/lookup/<asteroid_id>", methods=["GET"])
    def neo_lookup(asteroid_id: str) -> Any:
        record = _run(_service().lookup(asteroid_id))
        return _success(record.data, "Asteroid data retrieved")

    @app.route("/api/v1/neo/risk", methods=["GET"])
    def neo_risk() -> Any:
        args = _date_range_args()
        analysis = _run(_service().analyze_feed_risk(args["start_date"], args["end_date"]))
        return _success(analysis, "Risk analysis completed")

    @app.route("/api/v1/neo/lookup/<asteroid_id>/risk", methods=["GET"])
    def neo_lookup_risk(asteroid_id: str) -> Any:
        analysis = _run(_service().lookup_risk(asteroid_id))
        return _success(analysis, "Asteroid risk analysis completed")

    @app.route("/api/v1/neo/lookup/<asteroid_id>/sentry-risk", methods=["GET"])
    def neo_sentry_risk(asteroid_id: str) -> Any:
        analysis = _run(_service().analyze_risk_sentry_enhanced(asteroid_id))
        if analysis.get("sentry_available") is False:
            message = "Asteroid risk analysis completed (not in Sentry monitoring)"
        else:
            message = "Sentry-enhanced risk analysis completed"
        return _success(analysis, message)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _exit_on_sigterm(signum: int, frame: Any) -> None:
    logger.info("Received signal %s, shutting down", signum)
    raise SystemExit(0)


def main() -> None:
    settings = get_settings()
    configure_logging(settings)
    try:
        app = create_app(settings)
    except EngineStartupError as exc:
        logger.critical("Refusing to start: %s", exc)
        sys.exit(1)
    except CosmicWatchError as exc:
        logger.critical("Startup failed: %s", exc)
        sys.exit(1)

    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    logger.info("Cosmic Watch API listening on %s:%s", settings.host, settings.port)
    try:
        app.run(host=settings.host, port=settings.port, debug=settings.debug, use_reloader=False)
    finally:
        shutdown_app(app)


if __name__ == "__main__":
    main()
