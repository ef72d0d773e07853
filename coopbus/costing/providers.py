# coopbus/costing/providers.py

"""
Distance/duration providers used by the cost estimator.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from coopbus.core.config import settings
from coopbus.costing.exceptions import ExternalProviderUnavailable
from coopbus.utils.logger import get_logger

logger = get_logger(__name__)

GOOGLE_DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


@dataclass(frozen=True)
class RouteMetrics:
    """Distance and travel time between two places"""
    distance_meters: float
    duration_seconds: float


class DistanceProvider(Protocol):
    """Anything that can look up distance and duration between two addresses"""

    def lookup(self, origin: str, destination: str) -> RouteMetrics:
        ...


class GoogleDistanceMatrixProvider:
    """Looks up driving distance and duration with the Google Distance Matrix API"""

    name = "google_distance_matrix"

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[int] = None):
        self.api_key = api_key if api_key is not None else settings.google_maps_api_key
        self.timeout = timeout or settings.google_maps_timeout_seconds

    def lookup(self, origin: str, destination: str) -> RouteMetrics:
        if not self.api_key:
            raise ExternalProviderUnavailable(self.name, "no API key configured")

        try:
            response = requests.get(
                GOOGLE_DISTANCE_MATRIX_URL,
                params={
                    "origins": origin,
                    "destinations": destination,
                    "mode": "driving",
                    "units": "metric",
                    "key": self.api_key,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalProviderUnavailable(self.name, str(e)) from e

        if response.status_code != 200:
            raise ExternalProviderUnavailable(self.name, f"HTTP {response.status_code}")

        payload = response.json()
        if payload.get("status") != "OK":
            raise ExternalProviderUnavailable(self.name, f"API status {payload.get('status')}")

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError) as e:
            raise ExternalProviderUnavailable(self.name, "malformed response") from e

        if element.get("status") != "OK":
            raise ExternalProviderUnavailable(self.name, f"element status {element.get('status')}")

        metrics = RouteMetrics(
            distance_meters=float(element["distance"]["value"]),
            duration_seconds=float(element["duration"]["value"]),
        )
        logger.debug(
            "Distance matrix lookup",
            origin=origin, destination=destination,
            distance_meters=metrics.distance_meters, duration_seconds=metrics.duration_seconds,
        )
        return metrics


class StaticDistanceProvider:
    """Returns fixed metrics; used when no live provider is wanted"""

    name = "static"

    def __init__(self, distance_meters: float, duration_seconds: float):
        self.metrics = RouteMetrics(distance_meters=distance_meters, duration_seconds=duration_seconds)

    def lookup(self, origin: str, destination: str) -> RouteMetrics:
        return self.metrics


class UnavailableDistanceProvider:
    """Always unavailable, so every estimate uses the fallback values"""

    name = "unavailable"

    def lookup(self, origin: str, destination: str) -> RouteMetrics:
        raise ExternalProviderUnavailable(self.name, "no distance provider configured")


def get_distance_provider() -> DistanceProvider:
    """Dependency returning the configured distance provider"""
    if settings.google_maps_api_key:
        return GoogleDistanceMatrixProvider()
    return UnavailableDistanceProvider()
