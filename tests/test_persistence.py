import json
from pathlib import Path

import pytest

from journey_router.models.domain import JourneyAttempt
from journey_router.persistence.attempts import AttemptNotFoundError, InMemoryAttemptRepository
from journey_router.persistence.database import SupabaseAttemptRepository, SupabaseDistanceCache
from journey_router.persistence.filesystem import FileDistanceCache, FileStorage
from journey_router.services.routing.models import RouteResult


def test_file_storage_appends_and_reads_complete_lines(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    path = storage.cache_root / "example.jsonl"

    assert storage.read_lines_from(path) == ([], 0)
    storage.append_json_line(path, {"hello": "world"})
    with path.open("a", encoding="utf-8") as handle:
        handle.write('{"half":')

    lines, offset = storage.read_lines_from(path)

    assert lines == ['{"hello":"world"}']
    assert offset == len('{"hello":"world"}\n')
    assert storage.read_lines_from(path, offset) == ([], offset)


def test_file_distance_cache_survives_restart(tmp_path: Path) -> None:
    cache = FileDistanceCache(FileStorage(root=tmp_path))
    cache.put(1, 2, 3.5)
    cache.put(2, 1, 4.0)

    reloaded = FileDistanceCache(FileStorage(root=tmp_path))

    assert reloaded.get(1, 2) == 3.5
    assert reloaded.get(2, 1) == 4.0
    assert reloaded.get(1, 3) is None
    records = [json.loads(line) for line in reloaded.path.read_text(encoding="utf-8").splitlines()]
    assert records == [
        {"origin_id": 1, "destination_id": 2, "distance": 3.5},
        {"origin_id": 2, "destination_id": 1, "distance": 4.0},
    ]


def test_file_distance_cache_first_write_wins(tmp_path: Path) -> None:
    cache = FileDistanceCache(FileStorage(root=tmp_path))
    cache.put(1, 2, 3.5)
    cache.put(1, 2, 9.0)

    assert cache.get(1, 2) == 3.5
    assert FileDistanceCache(FileStorage(root=tmp_path)).get(1, 2) == 3.5
    assert len(cache.path.read_text(encoding="utf-8").splitlines()) == 1


def test_file_distance_caches_sharing_a_root_see_each_other(tmp_path: Path) -> None:
    first = FileDistanceCache(FileStorage(root=tmp_path))
    second = FileDistanceCache(FileStorage(root=tmp_path))

    first.put(1, 2, 3.5)
    second.put(3, 4, 7.0)
    second.put(1, 2, 9.0)

    assert second.get(1, 2) == 3.5
    assert first.get(3, 4) == 7.0
    reloaded = FileDistanceCache(FileStorage(root=tmp_path))
    assert len(reloaded) == 2
    assert reloaded.get(1, 2) == 3.5


def test_file_distance_cache_skips_invalid_rows(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    path = storage.cache_root / "waypoint_distances.jsonl"
    path.write_text(
        '{"origin_id": 1, "destination_id": 2, "distance": 1.0}\n{"origin_id": "x"}\nnot json\n',
        encoding="utf-8",
    )

    cache = FileDistanceCache(storage)

    assert len(cache) == 1
    assert cache.get(1, 2) == 1.0


def test_in_memory_repository_replaces_routes() -> None:
    attempt = JourneyAttempt(id=1, name="Trip", start_waypoint_id=10, longest_path=[10, 11, 12])
    repository = InMemoryAttemptRepository(attempts=[attempt])

    updated = repository.save_routes(1, RouteResult(path=(10, 12), distance=4.0), RouteResult(path=(10, 12), distance=4.0))

    assert updated.calculated is True
    assert updated.longest_path == [10, 12]
    assert updated.longest_path_distance == 4.0
    assert attempt.calculated is False

    with pytest.raises(AttemptNotFoundError):
        repository.save_routes(2, RouteResult(path=(1,), distance=0.0), RouteResult(path=(1,), distance=0.0))


class _FakeQuery:
    def __init__(self, table: "_FakeTable", values: dict | None = None) -> None:
        self.table = table
        self.values = values
        self.filters: list = []

    def select(self, columns):
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def limit(self, count):
        return self

    def execute(self):
        rows = [row for row in self.table.rows if all(check(row) for check in self.filters)]
        if self.values is not None:
            self.table.updates.append(self.values)
            for row in rows:
                row.update(self.values)
        return type("Response", (), {"data": [dict(row) for row in rows]})()


class _FakeUpsert:
    def __init__(self, table: "_FakeTable", row: dict, kwargs: dict) -> None:
        self.table, self.row, self.kwargs = table, row, kwargs

    def execute(self):
        self.table.upserts.append(self.kwargs)
        key = (self.row["origin_id"], self.row["destination_id"])
        if not any((r["origin_id"], r["destination_id"]) == key for r in self.table.rows):
            self.table.rows.append(self.row)
        return type("Response", (), {"data": [self.row]})()


class _FakeTable:
    def __init__(self) -> None:
        self.rows: list[dict] = []
        self.upserts: list[dict] = []
        self.updates: list[dict] = []

    def select(self, columns):
        return _FakeQuery(self).select(columns)

    def update(self, values):
        return _FakeQuery(self, values=values)

    def upsert(self, row, **kwargs):
        return _FakeUpsert(self, row, kwargs)


class _FakeSupabase:
    def __init__(self) -> None:
        self.tables: dict[str, _FakeTable] = {}

    def table(self, name):
        return self.tables.setdefault(name, _FakeTable())


def test_supabase_distance_cache_ignores_duplicate_pairs() -> None:
    client = _FakeSupabase()
    cache = SupabaseDistanceCache(client)

    assert cache.get(1, 2) is None
    cache.put(1, 2, 3.0)
    cache.put(1, 2, 8.0)

    assert cache.get(1, 2) == 3.0
    assert cache.get(2, 1) is None
    assert client.tables["waypoint_distances"].upserts[0] == {
        "on_conflict": "origin_id,destination_id",
        "ignore_duplicates": True,
    }


@pytest.fixture
def supabase_attempts() -> _FakeSupabase:
    client = _FakeSupabase()
    client.table("journey_attempts").rows.append(
        {
            "id": "4",
            "name": "Coast",
            "start_waypoint_id": "10",
            "calculated": False,
            "shortest_path": None,
            "shortest_path_distance": None,
            "longest_path": [10, 99],
            "longest_path_distance": 50,
        }
    )
    client.table("waypoints").rows.extend(
        [
            {"id": 12, "journey_attempt_id": "4", "name": "Pier", "latitude": "1.5", "longitude": 2},
            {"id": 10, "journey_attempt_id": "4", "name": None, "latitude": 1.0, "longitude": 2.0},
            {"id": 11, "journey_attempt_id": "4", "name": "Broken", "latitude": None, "longitude": 2.0},
            {"id": 20, "journey_attempt_id": "5", "name": "Elsewhere", "latitude": 0.0, "longitude": 0.0},
        ]
    )
    return client


def test_supabase_repository_maps_attempt_row(supabase_attempts: _FakeSupabase) -> None:
    attempt = SupabaseAttemptRepository(supabase_attempts).get_attempt("4")

    assert attempt.id == 4
    assert attempt.start_waypoint_id == 10
    assert attempt.waypoint_ids == [10, 11, 12]
    assert attempt.calculated is False
    assert attempt.shortest_path == []
    assert attempt.shortest_path_distance is None
    assert attempt.longest_path == [10, 99]
    assert attempt.longest_path_distance == 50.0


def test_supabase_repository_skips_invalid_waypoint_rows(supabase_attempts: _FakeSupabase) -> None:
    repository = SupabaseAttemptRepository(supabase_attempts)

    waypoints = repository.get_waypoints([12, 10, 11, 12])

    assert sorted(waypoint.id for waypoint in waypoints) == [10, 12]
    pier = next(waypoint for waypoint in waypoints if waypoint.id == 12)
    assert pier.coordinates == (1.5, 2.0)
    assert next(waypoint for waypoint in waypoints if waypoint.id == 10).name == "10"
    assert repository.get_waypoints([]) == []


def test_supabase_repository_replaces_routes(supabase_attempts: _FakeSupabase) -> None:
    repository = SupabaseAttemptRepository(supabase_attempts)

    updated = repository.save_routes(
        "4",
        RouteResult(path=(10, 12), distance=3.0),
        RouteResult(path=(10, 12), distance=3.0),
    )

    assert supabase_attempts.tables["journey_attempts"].updates == [
        {
            "calculated": True,
            "shortest_path": [10, 12],
            "shortest_path_distance": 3.0,
            "longest_path": [10, 12],
            "longest_path_distance": 3.0,
        }
    ]
    assert updated.calculated is True
    assert updated.shortest_path == [10, 12]
    assert updated.longest_path == [10, 12]
    assert updated.longest_path_distance == 3.0
    assert repository.get_attempt("4") == updated


def test_supabase_repository_missing_attempt(supabase_attempts: _FakeSupabase) -> None:
    repository = SupabaseAttemptRepository(supabase_attempts)
    route = RouteResult(path=(1,), distance=0.0)

    with pytest.raises(AttemptNotFoundError):
        repository.get_attempt(9)
    with pytest.raises(AttemptNotFoundError):
        repository.save_routes(9, route, route)
    assert supabase_attempts.tables["journey_attempts"].rows[0]["calculated"] is False
