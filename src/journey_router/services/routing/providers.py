"""Distance provider contract and the built-in implementations."""

from __future__ import annotations

import logging
from typing import Protocol, Tuple

from ...config import settings
from ..geospatial import haversine_km

Coordinate = Tuple[float, float]


class DistanceProviderError(Exception):
    """A provider could not produce a usable distance for a pair."""


class DistanceProvider(Protocol):
    def quote_distance(self, origin: Coordinate, destination: Coordinate) -> float:
        """Distance in kilometres from ``origin`` to ``destination``; raises on failure."""
        ...


class HaversineDistanceProvider:
    """Great-circle distances; used offline or when no routing engine is configured."""

    def quote_distance(self, origin: Coordinate, destination: Coordinate) -> float:
        return haversine_km(origin[0], origin[1], destination[0], destination[1])


def build_distance_provider(kind: str | None = None) -> DistanceProvider:
    kind = kind or settings.distance_provider
    if kind == "haversine":
        return HaversineDistanceProvider()
    if kind == "osrm":
        from .osrm_client import OSRMClient

        try:
            return OSRMClient()
        except ValueError as e:
            logging.error(f"OSRM client initialization failed: {e}")
            raise ValueError("OSRM service is not configured. Please check JR_OSRM_BASE_URL setting.") from e
    raise ValueError(f"Unsupported distance provider '{kind}'.")
