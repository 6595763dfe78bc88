"""Domain records exchanged between the Cosmic Watch backend components."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional

JSONDict = Dict[str, Any]


def safe_float(value: object) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class AsteroidRecord:
    """One cached NEO, keyed by its NeoWs reference id.

    Only the indexed attributes are extracted; ``data`` keeps the full provider
    payload exactly as it was last fetched.
    """

    neo_reference_id: str
    name: str
    absolute_magnitude_h: Optional[float]
    is_potentially_hazardous: bool
    estimated_diameter_min_km: Optional[float]
    estimated_diameter_max_km: Optional[float]
    data: JSONDict = field(repr=False, compare=True)
    last_fetched_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: JSONDict) -> "AsteroidRecord":
        diameter = (payload.get("estimated_diameter") or {}).get("kilometers") or {}
        reference_id = payload.get("neo_reference_id") or payload.get("id")
        if not reference_id:
            raise ValueError("NeoWs payload has no neo_reference_id")
        return cls(
            neo_reference_id=str(reference_id),
            name=payload.get("name", "Unknown"),
            absolute_magnitude_h=safe_float(payload.get("absolute_magnitude_h")),
            is_potentially_hazardous=bool(payload.get("is_potentially_hazardous_asteroid", False)),
            estimated_diameter_min_km=safe_float(diameter.get("estimated_diameter_min")),
            estimated_diameter_max_km=safe_float(diameter.get("estimated_diameter_max")),
            data=payload,
        )

    def stamped(self, fetched_at: datetime) -> "AsteroidRecord":
        return replace(self, last_fetched_at=fetched_at)

    @property
    def first_close_approach(self) -> JSONDict:
        approaches = self.data.get("close_approach_data") or []
        return approaches[0] if approaches else {}


@dataclass(frozen=True)
class DateRange:
    start: str
    end: str

    def to_payload(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}


@dataclass(frozen=True)
class FeedResult:
    """NeoWs feed for a date range, grouped by close-approach date."""

    date_range: DateRange
    element_count: int
    near_earth_objects: Dict[str, List[AsteroidRecord]]
    raw: JSONDict = field(repr=False)

    def records(self) -> List[AsteroidRecord]:
        flattened: List[AsteroidRecord] = []
        for day in sorted(self.near_earth_objects):
            flattened.extend(self.near_earth_objects[day])
        return flattened


@dataclass(frozen=True)
class VirtualImpactor:
    """A single potential impact solution reported by Sentry."""

    date: Optional[str]
    impact_probability: Optional[float]
    palermo_scale: Optional[float]
    torino_scale: Optional[float]
    impact_energy: Optional[float]
    distance: Optional[float]
    width: Optional[float]
    sigma_vi: Optional[float]


@dataclass(frozen=True)
class ImpactMonitoringRecord:
    """Sentry summary for one object. Physical estimates may be unknown."""

    designation: str
    full_name: Optional[str]
    cumulative_impact_probability: Optional[float]
    palermo_cumulative: Optional[float]
    palermo_max: Optional[float]
    torino_max: Optional[float]
    impact_energy: Optional[float]
    diameter: Optional[float]
    mass: Optional[float]
    velocity_impact: Optional[float]
    velocity_infinity: Optional[float]
    total_virtual_impactors: int
    virtual_impactors: List[VirtualImpactor] = field(default_factory=list)


@dataclass(frozen=True)
class EngineStatus:
    status: str
    engine: Optional[str]
    version: Optional[str]
    raw: JSONDict = field(default_factory=dict, repr=False)
