"""NASA Near-Earth Object Web Service (NeoWs) integration helpers."""
from __future__ import annotations

from typing import Dict, List, Optional

import logging

import httpx

from .errors import UpstreamError, UpstreamNotFound, UpstreamUnavailable
from .models import AsteroidRecord, DateRange, FeedResult, JSONDict


logger = logging.getLogger(__name__)

NASA_API_ROOT = "https://api.nasa.gov/neo/rest/v1"
DEFAULT_TIMEOUT = 15.0


class NASAClient:
    """Thin async NeoWs wrapper. One method call is exactly one HTTP request."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = NASA_API_ROOT,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key or "DEMO_KEY"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def fetch_feed(self, start_date: str, end_date: str) -> FeedResult:
        """Return NEOs with close approaches between the two dates.

        NeoWs rejects spans longer than seven days; that rejection is surfaced
        as an :class:`UpstreamError` rather than checked here.
        """

        payload = await self._request_json(
            "/feed",
            params={"start_date": start_date, "end_date": end_date},
        )
        return parse_feed(payload, DateRange(start_date, end_date))

    async def fetch_by_id(self, neo_id: str) -> AsteroidRecord:
        """Return the full NeoWs record for one asteroid."""

        payload = await self._request_json(f"/neo/{neo_id}")
        try:
            return AsteroidRecord.from_payload(payload)
        except ValueError as exc:
            raise UpstreamError(200, str(exc)) from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _request_json(self, path: str, params: Optional[Dict[str, object]] = None) -> JSONDict:
        url = f"{self.base_url}{path}"
        merged_params: Dict[str, object] = {"api_key": self.api_key}
        if params:
            merged_params.update(params)
        try:
            response = await self._client.get(url, params=merged_params, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailable(None, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(None, str(exc)) from exc

        if response.status_code == 404:
            raise UpstreamNotFound(404, response.text)
        if response.status_code == 429 or response.status_code >= 500:
            raise UpstreamUnavailable(response.status_code, response.text)
        if response.is_error:
            raise UpstreamError(response.status_code, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(response.status_code, "invalid JSON in response") from exc


def parse_feed(payload: JSONDict, date_range: DateRange) -> FeedResult:
    """Group a NeoWs feed payload into typed records, keeping the raw body."""

    grouped: Dict[str, List[AsteroidRecord]] = {}
    for day, objects in (payload.get("near_earth_objects") or {}).items():
        records: List[AsteroidRecord] = []
        for item in objects or []:
            try:
                records.append(AsteroidRecord.from_payload(item))
            except ValueError as exc:
                logger.warning("Skipping malformed NeoWs feed entry on %s: %s", day, exc)
        grouped[day] = records
    element_count = payload.get("element_count")
    if element_count is None:
        element_count = sum(len(records) for records in grouped.values())
    return FeedResult(
        date_range=date_range,
        element_count=int(element_count),
        near_earth_objects=grouped,
        raw=payload,
    )
