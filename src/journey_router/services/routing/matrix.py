"""Distance matrix construction backed by the distance cache."""

from __future__ import annotations

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from typing import Iterable, Iterator, Literal

from ...config import settings
from ...models.domain import Waypoint
from .cache import DistanceCache
from .models import UNKNOWN, DistanceMatrix, DistanceValue, MatrixStats
from .providers import DistanceProvider

logger = logging.getLogger(__name__)

Resolution = Literal["self", "cache", "provider", "failed"]


class _PairLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


# Shared by every builder in the process so two calculations touching the
# same pair wait for one provider call instead of issuing two. An entry lives
# only while some builder holds or waits on it.
_pair_locks: dict[tuple[int, int], _PairLock] = {}
_pair_locks_guard = threading.Lock()


@contextmanager
def _pair_lock(origin_id: int, destination_id: int) -> Iterator[None]:
    key = (origin_id, destination_id)
    with _pair_locks_guard:
        entry = _pair_locks.get(key)
        if entry is None:
            entry = _pair_locks[key] = _PairLock()
        entry.users += 1
    try:
        with entry.lock:
            yield
    finally:
        with _pair_locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del _pair_locks[key]


def _unique_nodes(origin: Waypoint, waypoints: Iterable[Waypoint]) -> list[Waypoint]:
    nodes = {origin.id: origin}
    for waypoint in waypoints:
        nodes.setdefault(waypoint.id, waypoint)
    return list(nodes.values())


class DistanceMatrixBuilder:
    """Resolves every ordered waypoint pair: cache first, provider on a miss."""

    def __init__(
        self,
        provider: DistanceProvider,
        cache: DistanceCache,
        max_parallel_requests: int | None = None,
    ) -> None:
        self.provider = provider
        self.cache = cache
        self.max_parallel_requests = max_parallel_requests or settings.max_parallel_distance_requests

    def _quote(self, origin: Waypoint, destination: Waypoint) -> DistanceValue:
        try:
            distance = float(self.provider.quote_distance(origin.coordinates, destination.coordinates))
        except Exception as e:
            logger.warning(f"Distance lookup failed for {origin.id} -> {destination.id}: {e}")
            return UNKNOWN
        if not math.isfinite(distance) or distance < 0:
            logger.warning(f"Discarding invalid distance {distance!r} for {origin.id} -> {destination.id}")
            return UNKNOWN
        return distance

    def resolve(self, origin: Waypoint, destination: Waypoint) -> tuple[DistanceValue, Resolution]:
        """Distance from ``origin`` to ``destination`` and where it came from.

        Failed quotes come back as ``UNKNOWN`` and are not cached, so a later
        build asks the provider again.
        """
        if origin.id == destination.id:
            return 0.0, "self"

        cached = self.cache.get(origin.id, destination.id)
        if cached is not None:
            return cached, "cache"

        with _pair_lock(origin.id, destination.id):
            # Another builder may have filled the pair while we waited.
            cached = self.cache.get(origin.id, destination.id)
            if cached is not None:
                return cached, "cache"
            distance = self._quote(origin, destination)
            if distance is UNKNOWN:
                return UNKNOWN, "failed"
            self.cache.put(origin.id, destination.id, distance)
            return distance, "provider"

    def build(self, origin: Waypoint, waypoints: Iterable[Waypoint]) -> tuple[DistanceMatrix, MatrixStats]:
        """Complete directed matrix over ``origin`` plus ``waypoints``."""
        nodes = _unique_nodes(origin, waypoints)
        matrix = DistanceMatrix(node_ids=tuple(node.id for node in nodes))
        stats = MatrixStats()
        pairs = [
            (source, target)
            for source in nodes
            for target in nodes
            if source.id != target.id
        ]
        stats.pairs = len(pairs)
        if not pairs:
            return matrix, stats

        started = time.perf_counter()
        workers = min(self.max_parallel_requests, len(pairs))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_pair = {
                executor.submit(self.resolve, source, target): (source.id, target.id)
                for source, target in pairs
            }
            for future in as_completed(future_to_pair):
                origin_id, destination_id = future_to_pair[future]
                distance, resolution = future.result()
                matrix.set(origin_id, destination_id, distance)
                if resolution == "cache":
                    stats.cache_hits += 1
                elif resolution == "provider":
                    stats.provider_calls += 1
                elif resolution == "failed":
                    stats.provider_calls += 1
                    stats.failures += 1

        elapsed = time.perf_counter() - started
        if stats.failures:
            logger.warning(
                f"Distance matrix for {len(nodes)} waypoints built with {stats.failures}/{stats.pairs} "
                f"unknown distances in {elapsed:.2f}s"
            )
        else:
            logger.info(
                f"Distance matrix for {len(nodes)} waypoints built in {elapsed:.2f}s "
                f"({stats.cache_hits} cached, {stats.provider_calls} fetched)"
            )
        return matrix, stats
