"""Domain models for waypoints and journey attempts."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True, slots=True)
class Waypoint:
    """A named geographic point a journey can pass through."""

    id: int
    name: str
    latitude: float
    longitude: float

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(slots=True)
class JourneyAttempt:
    """A set of waypoints with a designated start and its calculated routes."""

    id: int
    name: str
    start_waypoint_id: Optional[int]
    waypoint_ids: List[int] = field(default_factory=list)
    calculated: bool = False
    shortest_path: List[int] = field(default_factory=list)
    shortest_path_distance: Optional[float] = None
    longest_path: List[int] = field(default_factory=list)
    longest_path_distance: Optional[float] = None
