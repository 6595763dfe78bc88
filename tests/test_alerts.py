"""Tests for alert fact derivation."""

import pytest

from helpers import neo_payload

from cosmicwatch.backend.alerts import (
    CLOSE_APPROACH,
    HAZARDOUS_DETECTED,
    LUNAR_DISTANCE_KM,
    classify_risk_level,
    collect_alert_facts,
)
from cosmicwatch.backend.models import AsteroidRecord


def _record(neo_id, **kwargs):
    return AsteroidRecord.from_payload(neo_payload(neo_id, **kwargs))


@pytest.mark.parametrize(
    "lunar_distances, hazardous, expected",
    [
        (0.5, False, "CRITICAL"),
        (3, False, "HIGH"),
        (10, False, "MEDIUM"),
        (50, False, "LOW"),
        (50, True, "MEDIUM"),
        (0.5, True, "CRITICAL"),
    ],
)
def test_classify_risk_level(lunar_distances, hazardous, expected):
    assert classify_risk_level(lunar_distances * LUNAR_DISTANCE_KM, hazardous) == expected


def test_unknown_distance_is_low_unless_hazardous():
    assert classify_risk_level(None, False) == "LOW"
    assert classify_risk_level(None, True) == "MEDIUM"


def test_collects_hazardous_and_close_objects_only():
    records = [
        _record("far", miss_km="60000000"),
        _record("pha", hazardous=True, miss_km="7000000"),
        _record("close", miss_km=str(2 * LUNAR_DISTANCE_KM)),
    ]

    facts = collect_alert_facts(records, close_approach_ld=5)

    assert [(fact.asteroid_id, fact.alert_type) for fact in facts] == [
        ("pha", HAZARDOUS_DETECTED),
        ("close", CLOSE_APPROACH),
    ]
    close = facts[1]
    assert close.risk_level == "HIGH"
    assert close.approach_date == "2024-01-01"
    assert close.velocity_kmph == 45000.0
    assert "2.00 LD" in close.message
