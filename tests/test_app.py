"""Tests for the Flask request boundary and the startup sequence."""

import signal

import pytest

from helpers import feed_payload, neo_payload

from cosmicwatch import app as app_module
from cosmicwatch.app import create_app, shutdown_app
from cosmicwatch.backend.background import BackgroundTasks
from cosmicwatch.backend.cache import AsteroidCache
from cosmicwatch.backend.data_service import NeoDataService
from cosmicwatch.backend.errors import (
    EngineStartupError,
    ScoringEngineUnavailable,
    UpstreamError,
    UpstreamNotFound,
)
from cosmicwatch.backend.models import AsteroidRecord, DateRange
from cosmicwatch.backend.nasa_client import parse_feed
from cosmicwatch.backend.store import AsteroidStore
from cosmicwatch.config import Settings
from cosmicwatch.runtime import EventLoopThread


class StubService:
    """Async stand-in for NeoDataService recording what the views asked for."""

    def __init__(self):
        self.calls = []
        self.error = None

    async def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def get_feed(self, start_date, end_date):
        self.calls.append(("feed", start_date, end_date))
        await self._maybe_fail()
        return parse_feed(feed_payload({start_date: [neo_payload("1")]}), DateRange(start_date, end_date))

    async def lookup(self, neo_id):
        self.calls.append(("lookup", neo_id))
        await self._maybe_fail()
        return AsteroidRecord.from_payload(neo_payload(neo_id))

    async def analyze_feed_risk(self, start_date, end_date):
        self.calls.append(("risk", start_date, end_date))
        await self._maybe_fail()
        return {"total_analyzed": 1}

    async def lookup_risk(self, neo_id):
        self.calls.append(("lookup_risk", neo_id))
        await self._maybe_fail()
        return {"risk_level": "low"}

    async def analyze_risk_sentry_enhanced(self, neo_id):
        self.calls.append(("sentry", neo_id))
        await self._maybe_fail()
        return {"risk_level": "low", "sentry_available": False}

    async def get_health_snapshot(self):
        return {"status": "ok", "services": {}}

    async def aclose(self, drain_timeout=None):
        self.calls.append(("aclose", drain_timeout))


@pytest.fixture
def service():
    return StubService()


@pytest.fixture
def flask_app(service):
    application = create_app(Settings(), service=service, runtime=EventLoopThread())
    application.testing = True
    yield application
    shutdown_app(application)


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


class TestRoutes:
    def test_feed_wraps_raw_payload_in_envelope(self, client, service):
        response = client.get("/api/v1/neo/feed?start_date=2024-01-01&end_date=2024-01-02")

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["element_count"] == 1
        assert service.calls == [("feed", "2024-01-01", "2024-01-02")]

    def test_feed_defaults_to_today(self, client, service):
        client.get("/api/v1/neo/feed")

        _, start, end = service.calls[0]
        assert start == end
        assert len(start) == 10

    def test_lookup_returns_provider_payload(self, client):
        response = client.get("/api/v1/neo/lookup/2101955")

        assert response.status_code == 200
        assert response.get_json()["data"]["neo_reference_id"] == "2101955"

    def test_sentry_fallback_message(self, client):
        body = client.get("/api/v1/neo/lookup/3542519/sentry-risk").get_json()

        assert body["data"]["sentry_available"] is False
        assert "not in Sentry" in body["message"]

    def test_risk_routes(self, client, service):
        assert client.get("/api/v1/neo/risk?start_date=2024-01-01&end_date=2024-01-01").status_code == 200
        assert client.get("/api/v1/neo/lookup/7/risk").get_json()["data"] == {"risk_level": "low"}
        assert ("lookup_risk", "7") in service.calls

    def test_health(self, client):
        assert client.get("/api/health").get_json()["status"] == "ok"


class TestErrorMapping:
    @pytest.mark.parametrize(
        "error, status",
        [
            (UpstreamNotFound(404, "no such asteroid"), 404),
            (UpstreamError(400, "7 day limit"), 502),
            (ScoringEngineUnavailable(None, "refused"), 503),
        ],
    )
    def test_backend_errors_become_error_envelopes(self, client, service, error, status):
        service.error = error

        response = client.get("/api/v1/neo/lookup/1")

        assert response.status_code == status
        body = response.get_json()
        assert body["success"] is False
        assert body["error"]["type"] == type(error).__name__
        assert body["error"]["status_code"] == error.status_code


class FailingRiskEngine:
    async def wait_until_healthy(self, max_attempts=5, base_delay=2.0):
        raise EngineStartupError("risk engine unreachable")

    async def aclose(self):
        pass


class NullClient:
    api_key = "k"

    async def aclose(self):
        pass


class TestStartup:
    def test_unhealthy_engine_prevents_app_creation(self, monkeypatch):
        built = {}

        def fake_create_data_service(settings):
            service = NeoDataService(
                nasa_client=NullClient(),
                cache=AsteroidCache(AsteroidStore.from_url("sqlite+aiosqlite:///:memory:")),
                risk_engine=FailingRiskEngine(),
                sentry_client=NullClient(),
                background=BackgroundTasks(),
            )
            built["service"] = service
            return service

        monkeypatch.setattr(app_module, "create_data_service", fake_create_data_service)
        runtime = EventLoopThread()

        with pytest.raises(EngineStartupError):
            create_app(Settings(), runtime=runtime)

        assert "service" in built
        assert runtime.running is False

    def test_main_exits_when_engine_never_becomes_healthy(self, monkeypatch):
        def refuse(settings):
            raise EngineStartupError("risk engine unreachable")

        monkeypatch.setattr(app_module, "create_app", refuse)
        monkeypatch.setattr(app_module, "configure_logging", lambda settings: None)

        with pytest.raises(SystemExit) as excinfo:
            app_module.main()

        assert excinfo.value.code == 1

    def test_sigterm_during_serve_drains_through_shutdown(self, monkeypatch):
        handlers = {}
        shut_down = []

        class ServingApp:
            def run(self, **kwargs):
                handlers[signal.SIGTERM](signal.SIGTERM, None)

        serving = ServingApp()
        monkeypatch.setattr(app_module, "create_app", lambda settings: serving)
        monkeypatch.setattr(app_module, "configure_logging", lambda settings: None)
        monkeypatch.setattr(app_module, "shutdown_app", shut_down.append)
        monkeypatch.setattr(signal, "signal", lambda signum, handler: handlers.__setitem__(signum, handler))

        with pytest.raises(SystemExit) as excinfo:
            app_module.main()

        assert excinfo.value.code == 0
        assert shut_down == [serving]

    def test_shutdown_closes_service(self, service):
        application = create_app(Settings(), service=service, runtime=EventLoopThread())

        shutdown_app(application)

        assert service.calls[-1][0] == "aclose"
