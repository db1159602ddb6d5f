"""Supabase persistence for journey attempts and the distance cache.

Tables:

- ``journey_attempts``: ``id``, ``name``, ``start_waypoint_id``, ``calculated``,
  ``shortest_path``, ``shortest_path_distance``, ``longest_path``,
  ``longest_path_distance``
- ``waypoints``: ``id``, ``journey_attempt_id``, ``name``, ``latitude``, ``longitude``
- ``waypoint_distances``: ``origin_id``, ``destination_id``, ``distance``
  (unique on the pair)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from ..db.supabase import get_supabase_client
from ..models.domain import JourneyAttempt, Waypoint
from ..services.routing.models import RouteResult
from .attempts import AttemptNotFoundError, route_fields


def _require_client(client: Any | None) -> Any:
    client = client or get_supabase_client()
    if client is None:
        raise ValueError("Supabase is not configured. Set JR_SUPABASE_URL and JR_SUPABASE_KEY.")
    return client


def _waypoint_from_row(row: dict) -> Waypoint:
    return Waypoint(
        id=int(row["id"]),
        name=str(row.get("name") or row["id"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
    )


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


class SupabaseDistanceCache:
    def __init__(self, client: Any | None = None) -> None:
        self.client = _require_client(client)

    def get(self, origin_id: int, destination_id: int) -> Optional[float]:
        response = (
            self.client.table("waypoint_distances")
            .select("distance")
            .eq("origin_id", origin_id)
            .eq("destination_id", destination_id)
            .limit(1)
            .execute()
        )
        rows = response.data or []
        if not rows or rows[0].get("distance") is None:
            return None
        return float(rows[0]["distance"])

    def put(self, origin_id: int, destination_id: int, distance: float) -> None:
        # Unique index on the pair plus ignore_duplicates keeps the first write.
        self.client.table("waypoint_distances").upsert(
            {"origin_id": origin_id, "destination_id": destination_id, "distance": float(distance)},
            on_conflict="origin_id,destination_id",
            ignore_duplicates=True,
        ).execute()


class SupabaseAttemptRepository:
    def __init__(self, client: Any | None = None) -> None:
        self.client = _require_client(client)

    def get_attempt(self, attempt_id: int) -> JourneyAttempt:
        response = self.client.table("journey_attempts").select("*").eq("id", attempt_id).limit(1).execute()
        rows = response.data or []
        if not rows:
            raise AttemptNotFoundError(f"Journey attempt {attempt_id} not found.")
        row = rows[0]

        waypoint_rows = (
            self.client.table("waypoints").select("id").eq("journey_attempt_id", attempt_id).execute().data or []
        )
        start_id = row.get("start_waypoint_id")
        return JourneyAttempt(
            id=int(row["id"]),
            name=str(row.get("name") or ""),
            start_waypoint_id=int(start_id) if start_id is not None else None,
            waypoint_ids=sorted(int(item["id"]) for item in waypoint_rows),
            calculated=bool(row.get("calculated")),
            shortest_path=[int(wid) for wid in row.get("shortest_path") or []],
            shortest_path_distance=_optional_float(row.get("shortest_path_distance")),
            longest_path=[int(wid) for wid in row.get("longest_path") or []],
            longest_path_distance=_optional_float(row.get("longest_path_distance")),
        )

    def get_waypoints(self, waypoint_ids: Iterable[int]) -> List[Waypoint]:
        ids = list(dict.fromkeys(waypoint_ids))
        if not ids:
            return []
        response = (
            self.client.table("waypoints").select("id,name,latitude,longitude").in_("id", ids).execute()
        )
        waypoints: list[Waypoint] = []
        for row in response.data or []:
            try:
                waypoints.append(_waypoint_from_row(row))
            except (KeyError, ValueError, TypeError) as e:
                logging.warning(f"Skipping invalid waypoint row: {e}")
        return waypoints

    def save_routes(self, attempt_id: int, shortest: RouteResult, longest: RouteResult) -> JourneyAttempt:
        response = (
            self.client.table("journey_attempts")
            .update(route_fields(shortest, longest))
            .eq("id", attempt_id)
            .execute()
        )
        if not response.data:
            raise AttemptNotFoundError(f"Journey attempt {attempt_id} not found.")
        logging.info(f"Saved routes for journey attempt {attempt_id}")
        return self.get_attempt(attempt_id)
