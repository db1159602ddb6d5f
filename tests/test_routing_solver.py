import itertools

import pytest

from journey_router.services.routing.models import UNKNOWN, DistanceMatrix
from journey_router.services.routing.solver import (
    NoCompletePathError,
    RouteTooLargeError,
    solve_routes,
)

ORIGIN, A, B = 1, 2, 3


def _three_node_matrix() -> DistanceMatrix:
    return DistanceMatrix.from_rows(
        {
            ORIGIN: {A: 1.0, B: 10.0},
            A: {ORIGIN: 5.0, B: 2.0},
            B: {ORIGIN: 5.0, A: 2.0},
        }
    )


def _grid_matrix(size: int) -> DistanceMatrix:
    # Asymmetric but deterministic distances.
    nodes = list(range(1, size + 1))
    return DistanceMatrix.from_rows(
        {i: {j: float((i * 7 + j * 3) % 11 + 1) for j in nodes if j != i} for i in nodes}
    )


def _brute_force(matrix: DistanceMatrix, start: int) -> tuple[float, float]:
    others = [node for node in matrix.node_ids if node != start]
    totals = []
    for order in itertools.permutations(others):
        path = (start, *order)
        totals.append(sum(matrix.get(u, v) for u, v in zip(path, path[1:])))
    return min(totals), max(totals)


def test_solve_routes_three_nodes():
    solution = solve_routes(_three_node_matrix(), ORIGIN)

    assert solution.shortest.path == (ORIGIN, A, B)
    assert solution.shortest.distance == pytest.approx(3.0)
    assert solution.longest.path == (ORIGIN, B, A)
    assert solution.longest.distance == pytest.approx(12.0)


def test_single_node_is_trivial_path():
    matrix = DistanceMatrix(node_ids=(ORIGIN,))

    solution = solve_routes(matrix, ORIGIN)

    assert solution.shortest.path == (ORIGIN,)
    assert solution.longest.path == (ORIGIN,)
    assert solution.shortest.distance == 0.0
    assert solution.longest.distance == 0.0


def test_unknown_edge_leaves_single_valid_ordering():
    matrix = _three_node_matrix()
    matrix.set(A, B, UNKNOWN)

    solution = solve_routes(matrix, ORIGIN)

    assert solution.shortest.path == (ORIGIN, B, A)
    assert solution.longest.path == (ORIGIN, B, A)
    assert solution.shortest.distance == pytest.approx(12.0)


def test_unknown_edge_never_chosen_as_longest():
    matrix = _three_node_matrix()
    # Would be the longest leg by far if it were usable.
    matrix.set(B, A, UNKNOWN)

    solution = solve_routes(matrix, ORIGIN)

    assert solution.longest.path == (ORIGIN, A, B)
    assert solution.longest.distance == pytest.approx(3.0)


def test_no_complete_path_raises():
    matrix = _three_node_matrix()
    matrix.set(A, B, UNKNOWN)
    matrix.set(B, A, UNKNOWN)

    with pytest.raises(NoCompletePathError):
        solve_routes(matrix, ORIGIN)


def test_start_must_be_in_matrix():
    with pytest.raises(ValueError):
        solve_routes(_three_node_matrix(), 99)


def test_empty_matrix_is_rejected():
    with pytest.raises(ValueError):
        solve_routes(DistanceMatrix(node_ids=()), ORIGIN)


def test_incomplete_matrix_is_rejected():
    matrix = DistanceMatrix.from_rows({ORIGIN: {A: 1.0}, A: {}})

    with pytest.raises(ValueError, match="incomplete"):
        solve_routes(matrix, ORIGIN)


def test_node_ceiling_is_enforced():
    with pytest.raises(RouteTooLargeError):
        solve_routes(_grid_matrix(5), 1, max_nodes=4)


def test_matches_brute_force_and_covers_every_node():
    matrix = _grid_matrix(7)

    solution = solve_routes(matrix, 3)
    expected_min, expected_max = _brute_force(matrix, 3)

    assert solution.shortest.distance == pytest.approx(expected_min)
    assert solution.longest.distance == pytest.approx(expected_max)
    assert solution.shortest.distance <= solution.longest.distance
    for result in (solution.shortest, solution.longest):
        assert result.path[0] == 3
        assert sorted(result.path) == sorted(matrix.node_ids)
        legs = sum(matrix.get(u, v) for u, v in zip(result.path, result.path[1:]))
        assert legs == pytest.approx(result.distance)


def test_ties_resolve_deterministically():
    nodes = [10, 20, 30, 40]
    matrix = DistanceMatrix.from_rows({i: {j: 1.0 for j in nodes if j != i} for i in nodes})

    first = solve_routes(matrix, 10)
    second = solve_routes(matrix, 10)

    assert first == second
    # Every ordering costs 3: the lowest end node wins, then the first predecessor found.
    assert first.shortest.path == (10, 40, 30, 20)
    assert first.longest.path == (10, 40, 30, 20)
    assert first.shortest.distance == pytest.approx(3.0)
