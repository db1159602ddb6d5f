"""Route calculation orchestration for journey attempts."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Literal, TypeVar

from ...config import settings
from ...models.domain import JourneyAttempt
from ...persistence.attempts import AttemptRepository, InMemoryAttemptRepository
from ..outputs.navigation import NavigationLink, NavigationLinkBuilder
from .cache import DistanceCache
from .matrix import DistanceMatrixBuilder
from .models import MatrixStats, RouteSolution
from .providers import build_distance_provider
from .solver import RouteTooLargeError, solve_routes

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CalculationSupersededError(RuntimeError):
    """A newer calculation for the same attempt was started before this one finished."""


class _CalculationTracker:
    """Hands out per-attempt tickets; only the newest ticket may commit."""

    def __init__(self) -> None:
        self._latest: dict[int, int] = {}
        self._commit_locks: dict[int, threading.Lock] = {}
        self._lock = threading.Lock()

    def begin(self, attempt_id: int) -> int:
        with self._lock:
            ticket = self._latest.get(attempt_id, 0) + 1
            self._latest[attempt_id] = ticket
            return ticket

    def is_current(self, attempt_id: int, ticket: int) -> bool:
        with self._lock:
            return self._latest.get(attempt_id) == ticket

    def commit(self, attempt_id: int, ticket: int, write: Callable[[], T]) -> T:
        # Per-attempt lock: begin() and writes for other attempts never wait on this write.
        with self._lock:
            commit_lock = self._commit_locks.setdefault(attempt_id, threading.Lock())
        with commit_lock:
            if not self.is_current(attempt_id, ticket):
                raise CalculationSupersededError(
                    f"Calculation for journey attempt {attempt_id} was superseded by a newer request."
                )
            return write()


_tracker = _CalculationTracker()


@lru_cache()
def get_attempt_repository() -> AttemptRepository:
    if settings.supabase_configured:
        from ...persistence.database import SupabaseAttemptRepository

        return SupabaseAttemptRepository()
    logging.info("Supabase not configured - journey attempts are kept in memory")
    return InMemoryAttemptRepository()


@lru_cache()
def get_distance_cache() -> DistanceCache:
    if settings.supabase_configured:
        from ...persistence.database import SupabaseDistanceCache

        return SupabaseDistanceCache()
    from ...persistence.filesystem import FileDistanceCache

    logging.info("Supabase not configured - distances are cached on disk")
    return FileDistanceCache()


def build_matrix_builder() -> DistanceMatrixBuilder:
    return DistanceMatrixBuilder(provider=build_distance_provider(), cache=get_distance_cache())


@dataclass(slots=True)
class CalculationOutcome:
    attempt: JourneyAttempt
    solution: RouteSolution
    stats: MatrixStats
    unknown_pairs: list[tuple[int, int]] = field(default_factory=list)


class AttemptResultWriter:
    """Builds the matrix, solves both routes and stores them on the attempt.

    The attempt is written once, at the end. Any earlier failure leaves it as it was.
    """

    def __init__(
        self,
        repository: AttemptRepository,
        matrix_builder: DistanceMatrixBuilder,
        *,
        max_nodes: int | None = None,
        tracker: _CalculationTracker | None = None,
    ) -> None:
        self.repository = repository
        self.matrix_builder = matrix_builder
        self.max_nodes = max_nodes if max_nodes is not None else settings.max_route_nodes
        self.tracker = tracker or _tracker

    def calculate(self, attempt_id: int) -> CalculationOutcome:
        ticket = self.tracker.begin(attempt_id)
        attempt = self.repository.get_attempt(attempt_id)
        if attempt.start_waypoint_id is None:
            raise ValueError(f"Journey attempt {attempt_id} has no start waypoint.")

        start_id = attempt.start_waypoint_id
        waypoints = self.repository.get_waypoints([start_id, *attempt.waypoint_ids])
        start = next((waypoint for waypoint in waypoints if waypoint.id == start_id), None)
        if start is None:
            raise ValueError(f"Start waypoint {start_id} of journey attempt {attempt_id} does not exist.")
        candidates = [waypoint for waypoint in waypoints if waypoint.id != start_id]

        node_count = len({waypoint.id for waypoint in candidates}) + 1
        if node_count > self.max_nodes:
            raise RouteTooLargeError(
                f"Journey attempt {attempt_id} has {node_count} waypoints; "
                f"the exact solver accepts at most {self.max_nodes}."
            )

        logger.info(f"Calculating routes for journey attempt {attempt_id} ({node_count} waypoints)")
        matrix, stats = self.matrix_builder.build(start, candidates)
        if not self.tracker.is_current(attempt_id, ticket):
            raise CalculationSupersededError(
                f"Calculation for journey attempt {attempt_id} was superseded by a newer request."
            )
        solution = solve_routes(matrix, start_id, max_nodes=self.max_nodes)

        updated = self.tracker.commit(
            attempt_id,
            ticket,
            lambda: self.repository.save_routes(attempt_id, solution.shortest, solution.longest),
        )
        return CalculationOutcome(
            attempt=updated,
            solution=solution,
            stats=stats,
            unknown_pairs=matrix.unknown_pairs(),
        )


def calculate_journey_routes(
    attempt_id: int,
    *,
    repository: AttemptRepository | None = None,
    matrix_builder: DistanceMatrixBuilder | None = None,
) -> CalculationOutcome:
    writer = AttemptResultWriter(
        repository=repository or get_attempt_repository(),
        matrix_builder=matrix_builder or build_matrix_builder(),
    )
    return writer.calculate(attempt_id)


def navigation_for_attempt(
    attempt_id: int,
    route: Literal["shortest", "longest"] = "shortest",
    *,
    repository: AttemptRepository | None = None,
) -> NavigationLink:
    repository = repository or get_attempt_repository()
    attempt = repository.get_attempt(attempt_id)
    path = attempt.shortest_path if route == "shortest" else attempt.longest_path
    return NavigationLinkBuilder(repository).build(path)
