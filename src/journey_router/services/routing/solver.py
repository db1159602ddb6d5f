"""Exact shortest/longest open-route solver.

Finds, for a fixed start node, the minimum and maximum total-distance
Hamiltonian paths over a directed distance matrix using dynamic programming
over visited-node subsets. Both directions share one pass over the state
space and keep their own value and predecessor tables.

Edges whose distance is ``UNKNOWN`` are never traversed by either table, so
a path needing such an edge can be neither the shortest nor the longest
route. When every complete path needs one, ``NoCompletePathError`` is
raised instead of returning a corrupted total.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Sequence

from ...config import settings
from .models import UNKNOWN, DistanceMatrix, RouteResult, RouteSolution

logger = logging.getLogger(__name__)

_NO_PREDECESSOR = -1


class RouteTooLargeError(ValueError):
    """The node set exceeds what the exact solver is allowed to handle."""


class NoCompletePathError(ValueError):
    """No Hamiltonian path from the start avoids unknown distances."""


def _prepare_weights(matrix: DistanceMatrix, nodes: Sequence[int]) -> list[list[float | None]]:
    """Positional weight table; ``None`` marks an unusable edge."""
    weights: list[list[float | None]] = []
    for origin_id in nodes:
        row: list[float | None] = []
        for destination_id in nodes:
            if origin_id == destination_id:
                row.append(0.0)
                continue
            try:
                value = matrix.get(origin_id, destination_id)
            except KeyError as exc:
                raise ValueError(
                    f"Distance matrix is incomplete: missing {origin_id} -> {destination_id}."
                ) from exc
            row.append(None if value is UNKNOWN else float(value))
        weights.append(row)
    return weights


def _backtrack(
    predecessors: list[int], full_mask: int, end: int, node_count: int, nodes: Sequence[int]
) -> tuple[int, ...]:
    path: list[int] = []
    mask = full_mask
    node = end
    while node != _NO_PREDECESSOR:
        path.append(nodes[node])
        previous = predecessors[mask * node_count + node]
        mask &= ~(1 << node)
        node = previous
    path.reverse()
    return tuple(path)


def solve_routes(
    matrix: DistanceMatrix,
    start_id: int,
    *,
    max_nodes: int | None = None,
) -> RouteSolution:
    """Return the shortest and longest open routes starting at ``start_id``.

    Ties resolve to the first path found when subsets are visited in
    ascending mask order and nodes in ascending id order, which makes the
    result reproducible for an unchanged matrix.

    That is not the lexicographically smallest path. The terminal scan keeps
    the lowest end id and each step back keeps the lowest predecessor id, so
    the tie-break reads from the end of the route. With every leg equal,
    nodes ``10, 20, 30, 40`` from ``10`` give ``(10, 40, 30, 20)``.
    """
    if not matrix.node_ids:
        raise ValueError("Cannot solve routes over an empty node set.")
    if start_id not in matrix.node_ids:
        raise ValueError(f"Start waypoint {start_id} is not part of the distance matrix.")

    nodes = sorted(set(matrix.node_ids))
    node_count = len(nodes)
    limit = max_nodes if max_nodes is not None else settings.max_route_nodes
    if node_count > limit:
        raise RouteTooLargeError(
            f"{node_count} waypoints exceed the exact solver limit of {limit} (start included)."
        )

    if node_count == 1:
        trivial = RouteResult(path=(start_id,), distance=0.0)
        return RouteSolution(shortest=trivial, longest=trivial)

    weights = _prepare_weights(matrix, nodes)
    start = nodes.index(start_id)
    full_mask = (1 << node_count) - 1
    table_size = (1 << node_count) * node_count

    min_values = [math.inf] * table_size
    max_values = [-math.inf] * table_size
    min_predecessors = [_NO_PREDECESSOR] * table_size
    max_predecessors = [_NO_PREDECESSOR] * table_size

    origin_state = (1 << start) * node_count + start
    min_values[origin_state] = 0.0
    max_values[origin_state] = 0.0

    started = time.perf_counter()
    start_bit = 1 << start
    for mask in range(1, full_mask + 1):
        if not mask & start_bit:
            continue
        base = mask * node_count
        for current in range(node_count):
            if not mask & (1 << current):
                continue
            min_here = min_values[base + current]
            max_here = max_values[base + current]
            if min_here == math.inf:
                # Unreachable states are unreachable in both tables.
                continue
            row = weights[current]
            for following in range(node_count):
                bit = 1 << following
                if mask & bit:
                    continue
                weight = row[following]
                if weight is None:
                    continue
                state = (mask | bit) * node_count + following
                candidate = min_here + weight
                if candidate < min_values[state]:
                    min_values[state] = candidate
                    min_predecessors[state] = current
                candidate = max_here + weight
                if candidate > max_values[state]:
                    max_values[state] = candidate
                    max_predecessors[state] = current

    final_base = full_mask * node_count
    shortest_end = longest_end = _NO_PREDECESSOR
    for end in range(node_count):
        value = min_values[final_base + end]
        if value == math.inf:
            continue
        if shortest_end == _NO_PREDECESSOR or value < min_values[final_base + shortest_end]:
            shortest_end = end
        if longest_end == _NO_PREDECESSOR or max_values[final_base + end] > max_values[final_base + longest_end]:
            longest_end = end

    if shortest_end == _NO_PREDECESSOR:
        raise NoCompletePathError(
            f"No route from waypoint {start_id} visits all {node_count} waypoints without an unknown distance."
        )

    shortest = RouteResult(
        path=_backtrack(min_predecessors, full_mask, shortest_end, node_count, nodes),
        distance=min_values[final_base + shortest_end],
    )
    longest = RouteResult(
        path=_backtrack(max_predecessors, full_mask, longest_end, node_count, nodes),
        distance=max_values[final_base + longest_end],
    )
    logger.info(
        f"Solved {node_count}-node route from {start_id} in {time.perf_counter() - started:.3f}s "
        f"(shortest {shortest.distance:.3f}, longest {longest.distance:.3f})"
    )
    return RouteSolution(shortest=shortest, longest=longest)
