"""Client for the external risk scoring engine."""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

import asyncio
import logging

import httpx

from .errors import (
    EngineStartupError,
    ScoringEngineError,
    ScoringEngineRejected,
    ScoringEngineUnavailable,
)
from .models import AsteroidRecord, DateRange, EngineStatus, ImpactMonitoringRecord, JSONDict
from .sentry_client import reshape_for_engine


logger = logging.getLogger(__name__)

ANALYZE_TIMEOUT = 30.0
HEALTH_TIMEOUT = 5.0


class RiskEngineClient:
    """Typed access to the engine's health and analysis endpoints.

    Analysis errors are raised as-is; there is no local fallback scoring.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_prefix: str = "/api/v1",
        timeout: float = ANALYZE_TIMEOUT,
        health_timeout: float = HEALTH_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.timeout = timeout
        self.health_timeout = health_timeout
        self._client = client or httpx.AsyncClient(headers={"Content-Type": "application/json"})
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------
    async def health_check(self) -> EngineStatus:
        """Any 2xx counts as healthy; the body is only read when it is a JSON object."""

        response = await self._send("GET", "/health", timeout=self.health_timeout)
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return EngineStatus(status="ok", engine=None, version=None)
        return EngineStatus(
            status=str(payload.get("status", "ok")),
            engine=payload.get("engine"),
            version=payload.get("version"),
            raw=payload,
        )

    async def wait_until_healthy(self, max_attempts: int = 5, base_delay: float = 2.0) -> EngineStatus:
        """Block bootstrap until the engine answers its health check.

        Backoff is linear: the wait after attempt ``n`` is ``base_delay * n``.
        Raises :class:`EngineStartupError` once every attempt has failed.
        """

        last_error: Optional[ScoringEngineError] = None
        for attempt in range(1, max_attempts + 1):
            try:
                status = await self.health_check()
            except ScoringEngineError as exc:
                last_error = exc
            else:
                logger.info("Risk engine is healthy (engine=%s, version=%s)", status.engine, status.version)
                return status

            if attempt == max_attempts:
                break
            delay = base_delay * attempt
            logger.warning(
                "Risk engine not ready (attempt %d/%d): %s; retrying in %.1fs",
                attempt,
                max_attempts,
                last_error,
                delay,
            )
            await self._sleep(delay)

        logger.error("Risk engine failed to become healthy after %d attempts", max_attempts)
        raise EngineStartupError(
            f"Risk engine unreachable at {self.base_url} after {max_attempts} attempts"
        ) from last_error

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    async def analyze_bulk(
        self,
        asteroids: Sequence[AsteroidRecord],
        date_range: Optional[DateRange] = None,
    ) -> JSONDict:
        body: Dict[str, Any] = {"asteroids": [asteroid.data for asteroid in asteroids]}
        if date_range is not None:
            body["date_range"] = date_range.to_payload()
        return await self._request("POST", f"{self.api_prefix}/analyze", json=body)

    async def analyze_single(self, asteroid: AsteroidRecord) -> JSONDict:
        return await self._request("POST", f"{self.api_prefix}/analyze/single", json=asteroid.data)

    async def analyze_with_impact_data(
        self,
        asteroid: AsteroidRecord,
        impact_record: ImpactMonitoringRecord,
    ) -> JSONDict:
        body = {
            "asteroid": asteroid.data,
            "sentry_data": reshape_for_engine(impact_record),
        }
        return await self._request("POST", f"{self.api_prefix}/analyze/sentry-enhanced", json=body)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> JSONDict:
        response = await self._send(method, path, json=json, timeout=timeout)
        try:
            return response.json()
        except ValueError as exc:
            raise ScoringEngineUnavailable(response.status_code, "invalid JSON in response") from exc

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: Optional[float] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        effective_timeout = timeout or self.timeout
        try:
            response = await self._client.request(method, url, json=json, timeout=effective_timeout)
        except httpx.TimeoutException as exc:
            raise ScoringEngineUnavailable(None, f"timed out after {effective_timeout}s") from exc
        except httpx.HTTPError as exc:
            raise ScoringEngineUnavailable(None, str(exc)) from exc

        if response.status_code >= 500:
            raise ScoringEngineUnavailable(response.status_code, response.text)
        if response.is_error:
            raise ScoringEngineRejected(response.status_code, response.text)
        return response
