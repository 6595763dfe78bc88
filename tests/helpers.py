"""NeoWs/Sentry payload builders and test doubles shared across suites."""

from datetime import datetime, timedelta, timezone
from typing import Callable, List

import httpx


def neo_payload(
    neo_id: str,
    name: str = "(2024 AB)",
    *,
    hazardous: bool = False,
    miss_km: str = "45000000.0",
    approach_date: str = "2024-01-01",
    diameter_min: float = 0.1,
    diameter_max: float = 0.25,
) -> dict:
    return {
        "id": neo_id,
        "neo_reference_id": neo_id,
        "name": name,
        "nasa_jpl_url": f"https://ssd.jpl.nasa.gov/tools/sbdb_lookup.html#/?sstr={neo_id}",
        "absolute_magnitude_h": 22.1,
        "estimated_diameter": {
            "kilometers": {
                "estimated_diameter_min": diameter_min,
                "estimated_diameter_max": diameter_max,
            }
        },
        "is_potentially_hazardous_asteroid": hazardous,
        "close_approach_data": [
            {
                "close_approach_date": approach_date,
                "relative_velocity": {
                    "kilometers_per_second": "12.5",
                    "kilometers_per_hour": "45000.0",
                },
                "miss_distance": {"kilometers": miss_km},
                "orbiting_body": "Earth",
            }
        ],
        "is_sentry_object": False,
    }


def feed_payload(objects_by_date: dict) -> dict:
    return {
        "links": {"self": "https://api.nasa.gov/neo/rest/v1/feed"},
        "element_count": sum(len(items) for items in objects_by_date.values()),
        "near_earth_objects": objects_by_date,
    }


def sentry_payload(des: str = "101955", *, mass: object = "7.8e+10") -> dict:
    return {
        "signature": {"source": "NASA/JPL Sentry Data API", "version": "2.0"},
        "summary": {
            "des": des,
            "fullname": "101955 Bennu (1999 RQ36)",
            "ip": "5.7e-04",
            "ps_cum": "-1.40",
            "ps_max": "-1.59",
            "ts_max": "0",
            "energy": "1.2e+03",
            "diameter": "0.49",
            "mass": mass,
            "v_imp": "12.7",
            "v_inf": "5.99",
            "n_imp": 2,
        },
        "data": [
            {
                "date": "2182-09-24.71",
                "ip": "3.7e-04",
                "ps": "-1.69",
                "ts": "0",
                "energy": "1.2e+03",
                "dist": "0.52",
                "width": "2.1e-03",
                "sigma_vi": "-0.56",
            },
            {
                "date": "2187-09-24.84",
                "ip": "2.5e-05",
                "ps": "-2.86",
                "ts": "0",
                "energy": "1.2e+03",
                "dist": "0.91",
                "width": "1.0e-03",
                "sigma_vi": "1.23",
            },
        ],
    }


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingTransport:
    """httpx MockTransport wrapper that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []
        self._handler = handler
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]

