"""Navigation links for persisted routes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence
from urllib.parse import urlencode

from ...config import settings
from ...models.domain import Waypoint
from ...persistence.attempts import AttemptRepository
from ..geospatial import format_coordinate


@dataclass(frozen=True, slots=True)
class NavigationLink:
    text: str
    link: str


EMPTY_LINK = NavigationLink(text="", link="")


def build_maps_url(waypoints: Sequence[Waypoint], base_url: str | None = None) -> str:
    """Directions URL: first waypoint as origin, last as destination, the rest in between."""
    if not waypoints:
        return ""
    first, last = waypoints[0], waypoints[-1]
    params: list[tuple[str, str]] = [
        ("api", "1"),
        ("origin", format_coordinate(first.latitude, first.longitude)),
        ("destination", format_coordinate(last.latitude, last.longitude)),
    ]
    params.extend(
        ("waypoints", format_coordinate(waypoint.latitude, waypoint.longitude))
        for waypoint in waypoints[1:-1]
    )
    return f"{base_url or settings.maps_base_url}?{urlencode(params, safe=',')}"


class NavigationLinkBuilder:
    """Turns an ordered list of waypoint ids into display text and a maps link.

    The given order is kept as-is. No distances are looked up.
    """

    def __init__(self, repository: AttemptRepository, base_url: str | None = None) -> None:
        self.repository = repository
        self.base_url = base_url

    def build(self, waypoint_ids: Iterable[int]) -> NavigationLink:
        ordered_ids = list(waypoint_ids)
        if not ordered_ids:
            return EMPTY_LINK

        by_id = {waypoint.id: waypoint for waypoint in self.repository.get_waypoints(ordered_ids)}
        missing = [wid for wid in ordered_ids if wid not in by_id]
        if missing:
            logging.warning(f"Navigation link skips unknown waypoint ids: {missing}")
        waypoints = [by_id[wid] for wid in ordered_ids if wid in by_id]
        if not waypoints:
            return EMPTY_LINK

        return NavigationLink(
            text=", ".join(waypoint.name for waypoint in waypoints),
            link=build_maps_url(waypoints, self.base_url),
        )
