"""CNEOS Sentry impact-monitoring lookups and reshaping for the risk engine."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import logging

import httpx

from .errors import ImpactMonitoringError, ImpactMonitoringUnavailable, NotTracked
from .models import ImpactMonitoringRecord, JSONDict, VirtualImpactor, safe_float


logger = logging.getLogger(__name__)

SENTRY_API_ENDPOINT = "https://ssd-api.jpl.nasa.gov/sentry.api"
DEFAULT_TIMEOUT = 15.0


class SentryClient:
    """Wrapper around the JPL SSD Sentry API (object mode)."""

    def __init__(
        self,
        *,
        endpoint: str = SENTRY_API_ENDPOINT,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._client = client or httpx.AsyncClient()

    async def fetch_impact_record(self, designation: str) -> ImpactMonitoringRecord:
        """Return Sentry's assessment, or raise :class:`NotTracked`.

        NeoWs ids are SPK-IDs, so all-digit identifiers are sent as ``spk``.
        """

        params = {"spk": designation} if designation.isdigit() else {"des": designation}
        try:
            response = await self._client.get(self.endpoint, params=params, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise ImpactMonitoringUnavailable(None, f"timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise ImpactMonitoringUnavailable(None, str(exc)) from exc

        if response.status_code == 404:
            logger.debug("Sentry has no entry for %s", designation)
            raise NotTracked(designation)
        if response.status_code >= 500:
            raise ImpactMonitoringUnavailable(response.status_code, response.text)
        if response.is_error:
            raise ImpactMonitoringError(response.status_code, response.text)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ImpactMonitoringUnavailable(response.status_code, "invalid JSON in response") from exc

        summary = payload.get("summary")
        if not isinstance(summary, dict):
            # Sentry answers 200 with an "error" or "removed" body for untracked objects.
            logger.debug("Sentry has no entry for %s: %s", designation, payload.get("error") or payload.get("removed"))
            raise NotTracked(designation)
        return _to_impact_record(designation, summary, payload.get("data") or [])

    async def aclose(self) -> None:
        await self._client.aclose()


def reshape_for_engine(record: ImpactMonitoringRecord) -> Dict[str, Any]:
    """Translate a Sentry record into the engine's ``sentry_data`` vocabulary.

    Unknown physical estimates stay as explicit ``None`` so the engine can tell
    "unknown" apart from zero.
    """

    return {
        "designation": record.designation,
        "cumulative_impact_probability": record.cumulative_impact_probability,
        "palermo_cumulative": record.palermo_cumulative,
        "palermo_max": record.palermo_max,
        "torino_max": record.torino_max,
        "impact_energy_mt": record.impact_energy,
        "diameter_km": record.diameter,
        "mass_kg": record.mass,
        "velocity_impact": record.velocity_impact,
        "velocity_infinity": record.velocity_infinity,
        "total_virtual_impactors": record.total_virtual_impactors,
        "virtual_impactors": [
            {
                "date": vi.date,
                "impact_probability": vi.impact_probability,
                "palermo_scale": vi.palermo_scale,
                "torino_scale": vi.torino_scale,
                "impact_energy_mt": vi.impact_energy,
                "distance_earth_radii": vi.distance,
                "width_earth_radii": vi.width,
                "sigma_vi": vi.sigma_vi,
            }
            for vi in record.virtual_impactors
        ],
    }


def _to_impact_record(designation: str, summary: JSONDict, rows: List[JSONDict]) -> ImpactMonitoringRecord:
    impactors = [
        VirtualImpactor(
            date=row.get("date"),
            impact_probability=safe_float(row.get("ip")),
            palermo_scale=safe_float(row.get("ps")),
            torino_scale=safe_float(row.get("ts")),
            impact_energy=safe_float(row.get("energy")),
            distance=safe_float(row.get("dist")),
            width=safe_float(row.get("width")),
            sigma_vi=safe_float(row.get("sigma_vi")),
        )
        for row in rows
        if isinstance(row, dict)
    ]
    n_imp = summary.get("n_imp")
    try:
        total = int(n_imp) if n_imp is not None else len(impactors)
    except (TypeError, ValueError):
        total = len(impactors)
    return ImpactMonitoringRecord(
        designation=str(summary.get("des") or designation),
        full_name=summary.get("fullname"),
        cumulative_impact_probability=safe_float(summary.get("ip")),
        palermo_cumulative=safe_float(summary.get("ps_cum")),
        palermo_max=safe_float(summary.get("ps_max")),
        torino_max=safe_float(summary.get("ts_max")),
        impact_energy=safe_float(summary.get("energy")),
        diameter=safe_float(summary.get("diameter")),
        mass=safe_float(summary.get("mass")),
        velocity_impact=safe_float(summary.get("v_imp")),
        velocity_infinity=safe_float(summary.get("v_inf")),
        total_virtual_impactors=total,
        virtual_impactors=impactors,
    )
