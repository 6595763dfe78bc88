"""Error taxonomy shared by the Cosmic Watch backend.

Each error carries an ``http_status`` hint so the request boundary can pick a
response code without inspecting the error's origin.
"""
from __future__ import annotations

from typing import Optional


class CosmicWatchError(RuntimeError):
    """Base class for every failure raised by the backend core."""

    http_status = 500
    #: True when an external dependency failed, False when the resource is missing.
    is_dependency_failure = True


class _RemoteError(CosmicWatchError):
    """Failure reported by a remote HTTP service, keeping its raw reply."""

    service = "remote service"

    def __init__(self, status_code: Optional[int], body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        detail = f"HTTP {status_code}" if status_code is not None else "no response"
        message = f"{self.service} error ({detail})"
        if body:
            message = f"{message}: {body[:500]}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# NASA NeoWs
# ---------------------------------------------------------------------------
class UpstreamError(_RemoteError):
    """Raised when the NASA NEO API request fails."""

    service = "NASA NeoWs"
    http_status = 502


class UpstreamUnavailable(UpstreamError):
    http_status = 503


class UpstreamNotFound(UpstreamError):
    http_status = 404
    is_dependency_failure = False


# ---------------------------------------------------------------------------
# Risk scoring engine
# ---------------------------------------------------------------------------
class ScoringEngineError(_RemoteError):
    """Raised when the risk scoring engine cannot produce a result."""

    service = "Risk engine"
    http_status = 502


class ScoringEngineUnavailable(ScoringEngineError):
    http_status = 503


class ScoringEngineRejected(ScoringEngineError):
    """The engine answered 4xx: the request we built was malformed."""


class EngineStartupError(CosmicWatchError):
    """The engine never became healthy during bootstrap."""

    http_status = 503


# ---------------------------------------------------------------------------
# CNEOS Sentry
# ---------------------------------------------------------------------------
class ImpactMonitoringError(_RemoteError):
    service = "CNEOS Sentry"
    http_status = 502


class ImpactMonitoringUnavailable(ImpactMonitoringError):
    http_status = 503


class NotTracked(CosmicWatchError):
    """Sentry has no impact-monitoring entry for the object.

    This is the normal outcome for most asteroids and is not logged as an error.
    """

    http_status = 404
    is_dependency_failure = False

    def __init__(self, designation: str) -> None:
        self.designation = designation
        super().__init__(f"{designation} is not tracked by Sentry impact monitoring")


# ---------------------------------------------------------------------------
# Durable store
# ---------------------------------------------------------------------------
class StoreUnavailable(CosmicWatchError):
    """The asteroid store could not be reached or timed out."""

    http_status = 503
