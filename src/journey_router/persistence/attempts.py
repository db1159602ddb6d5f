"""Journey attempt repository contract and in-memory implementation."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Iterable, List, Protocol

from ..models.domain import JourneyAttempt, Waypoint
from ..services.routing.models import RouteResult


class AttemptNotFoundError(LookupError):
    """No journey attempt exists with the requested id."""


class AttemptRepository(Protocol):
    def get_attempt(self, attempt_id: int) -> JourneyAttempt:
        ...

    def get_waypoints(self, waypoint_ids: Iterable[int]) -> List[Waypoint]:
        ...

    def save_routes(self, attempt_id: int, shortest: RouteResult, longest: RouteResult) -> JourneyAttempt:
        """Replace both routes and mark the attempt calculated, in one update."""
        ...


def route_fields(shortest: RouteResult, longest: RouteResult) -> dict:
    """Persisted column values for a calculated attempt."""
    return {
        "calculated": True,
        "shortest_path": list(shortest.path),
        "shortest_path_distance": shortest.distance,
        "longest_path": list(longest.path),
        "longest_path_distance": longest.distance,
    }


class InMemoryAttemptRepository:
    def __init__(
        self,
        attempts: Iterable[JourneyAttempt] = (),
        waypoints: Iterable[Waypoint] = (),
    ) -> None:
        self._attempts = {attempt.id: attempt for attempt in attempts}
        self._waypoints = {waypoint.id: waypoint for waypoint in waypoints}
        self._lock = threading.Lock()

    def add_attempt(self, attempt: JourneyAttempt) -> None:
        with self._lock:
            self._attempts[attempt.id] = attempt

    def add_waypoint(self, waypoint: Waypoint) -> None:
        with self._lock:
            self._waypoints[waypoint.id] = waypoint

    def get_attempt(self, attempt_id: int) -> JourneyAttempt:
        with self._lock:
            attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(f"Journey attempt {attempt_id} not found.")
        return attempt

    def get_waypoints(self, waypoint_ids: Iterable[int]) -> List[Waypoint]:
        with self._lock:
            return [self._waypoints[wid] for wid in dict.fromkeys(waypoint_ids) if wid in self._waypoints]

    def save_routes(self, attempt_id: int, shortest: RouteResult, longest: RouteResult) -> JourneyAttempt:
        with self._lock:
            attempt = self._attempts.get(attempt_id)
            if attempt is None:
                raise AttemptNotFoundError(f"Journey attempt {attempt_id} not found.")
            updated = replace(attempt, **route_fields(shortest, longest))
            self._attempts[attempt_id] = updated
            return updated
