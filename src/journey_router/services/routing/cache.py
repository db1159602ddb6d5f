"""Directional distance cache contract and in-memory store."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol, Tuple


class DistanceCache(Protocol):
    """Append-only store of resolved distances keyed by ordered waypoint pair."""

    def get(self, origin_id: int, destination_id: int) -> Optional[float]:
        ...

    def put(self, origin_id: int, destination_id: int, distance: float) -> None:
        ...


class InMemoryDistanceCache:
    """Process-local cache; the first write for a pair wins."""

    def __init__(self, records: Dict[Tuple[int, int], float] | None = None) -> None:
        self._records: Dict[Tuple[int, int], float] = dict(records or {})
        self._lock = threading.Lock()

    def get(self, origin_id: int, destination_id: int) -> Optional[float]:
        with self._lock:
            return self._records.get((origin_id, destination_id))

    def put(self, origin_id: int, destination_id: int, distance: float) -> None:
        with self._lock:
            self._records.setdefault((origin_id, destination_id), float(distance))

    def __len__(self) -> int:
        return len(self._records)
