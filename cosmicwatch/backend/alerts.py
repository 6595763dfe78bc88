"""Alert-worthy facts derived from feed data.

Only the facts are produced here; pushing them to users is someone else's job.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

import logging

from .models import AsteroidRecord, safe_float


logger = logging.getLogger(__name__)

LUNAR_DISTANCE_KM = 384_400.0
DEFAULT_CLOSE_APPROACH_LD = 5.0

CLOSE_APPROACH = "CLOSE_APPROACH"
HAZARDOUS_DETECTED = "HAZARDOUS_DETECTED"

RISK_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


@dataclass(frozen=True)
class AlertFact:
    asteroid_id: str
    asteroid_name: str
    alert_type: str
    risk_level: str
    message: str
    approach_date: Optional[str]
    miss_distance_km: Optional[float]
    velocity_kmph: Optional[float]


def classify_risk_level(miss_distance_km: Optional[float], hazardous: bool) -> str:
    if miss_distance_km is None:
        level = "LOW"
    else:
        lunar = miss_distance_km / LUNAR_DISTANCE_KM
        if lunar < 1:
            level = "CRITICAL"
        elif lunar < 5:
            level = "HIGH"
        elif lunar < 20:
            level = "MEDIUM"
        else:
            level = "LOW"
    if hazardous and RISK_LEVELS.index(level) < RISK_LEVELS.index("MEDIUM"):
        level = "MEDIUM"
    return level


def collect_alert_facts(
    records: Iterable[AsteroidRecord],
    *,
    close_approach_ld: float = DEFAULT_CLOSE_APPROACH_LD,
) -> List[AlertFact]:
    facts: List[AlertFact] = []
    for record in records:
        approach = record.first_close_approach
        miss_km = safe_float((approach.get("miss_distance") or {}).get("kilometers"))
        velocity = safe_float((approach.get("relative_velocity") or {}).get("kilometers_per_hour"))
        is_close = miss_km is not None and miss_km < close_approach_ld * LUNAR_DISTANCE_KM

        if record.is_potentially_hazardous:
            alert_type = HAZARDOUS_DETECTED
            message = f"Potentially hazardous asteroid {record.name} detected"
        elif is_close:
            alert_type = CLOSE_APPROACH
            message = f"Asteroid {record.name} passes within {close_approach_ld:g} lunar distances"
        else:
            continue

        if miss_km is not None:
            message = f"{message} (miss distance {miss_km / LUNAR_DISTANCE_KM:.2f} LD)"
        facts.append(
            AlertFact(
                asteroid_id=record.neo_reference_id,
                asteroid_name=record.name,
                alert_type=alert_type,
                risk_level=classify_risk_level(miss_km, record.is_potentially_hazardous),
                message=message,
                approach_date=approach.get("close_approach_date"),
                miss_distance_km=miss_km,
                velocity_kmph=velocity,
            )
        )
    return facts


async def log_alert_sink(fact: AlertFact) -> None:
    logger.info("[%s] %s: %s", fact.risk_level, fact.alert_type, fact.message)
