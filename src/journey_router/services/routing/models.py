"""Routing domain models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple, Union


class Unknown(enum.Enum):
    """Tag for a distance the provider could not quote."""

    DISTANCE = "unknown"

    def __repr__(self) -> str:
        return "UNKNOWN"


UNKNOWN = Unknown.DISTANCE

DistanceValue = Union[float, Unknown]


def is_known(value: DistanceValue) -> bool:
    return value is not UNKNOWN


@dataclass(slots=True)
class DistanceMatrix:
    """Directed distances keyed by waypoint id.

    Cells hold either a non-negative distance in kilometres or ``UNKNOWN``.
    The diagonal is always 0.
    """

    node_ids: Tuple[int, ...]
    cells: Dict[Tuple[int, int], DistanceValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for node_id in self.node_ids:
            self.cells[(node_id, node_id)] = 0.0

    def get(self, origin_id: int, destination_id: int) -> DistanceValue:
        if origin_id == destination_id:
            return 0.0
        return self.cells[(origin_id, destination_id)]

    def set(self, origin_id: int, destination_id: int, value: DistanceValue) -> None:
        if origin_id == destination_id:
            return
        self.cells[(origin_id, destination_id)] = value

    def pairs(self) -> Iterator[Tuple[int, int]]:
        """Every ordered pair of distinct nodes, ascending by id."""
        ordered = sorted(self.node_ids)
        for origin_id in ordered:
            for destination_id in ordered:
                if origin_id != destination_id:
                    yield origin_id, destination_id

    def missing_pairs(self) -> List[Tuple[int, int]]:
        return [pair for pair in self.pairs() if pair not in self.cells]

    def unknown_pairs(self) -> List[Tuple[int, int]]:
        return [pair for pair in self.pairs() if self.cells.get(pair) is UNKNOWN]

    def is_complete(self) -> bool:
        return not self.missing_pairs()

    @classmethod
    def from_rows(cls, rows: Dict[int, Dict[int, DistanceValue]]) -> "DistanceMatrix":
        """Build a matrix from ``{origin: {destination: distance}}`` rows."""
        matrix = cls(node_ids=tuple(rows))
        for origin_id, row in rows.items():
            for destination_id, value in row.items():
                matrix.set(origin_id, destination_id, value)
        return matrix


@dataclass(slots=True)
class MatrixStats:
    pairs: int = 0
    cache_hits: int = 0
    provider_calls: int = 0
    failures: int = 0


@dataclass(frozen=True, slots=True)
class RouteResult:
    path: Tuple[int, ...]
    distance: float


@dataclass(frozen=True, slots=True)
class RouteSolution:
    shortest: RouteResult
    longest: RouteResult
