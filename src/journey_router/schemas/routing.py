"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Tuple

from pydantic import BaseModel, Field


class RouteResultModel(BaseModel):
    path: List[int] = Field(..., description="Waypoint ids in visiting order, start first.")
    distance: float = Field(..., ge=0, description="Total distance in kilometres.")


class MatrixStatsModel(BaseModel):
    pairs: int
    cache_hits: int
    provider_calls: int
    failures: int


class JourneyRoutesResponse(BaseModel):
    attempt_id: int
    calculated: bool
    shortest: RouteResultModel
    longest: RouteResultModel
    matrix: MatrixStatsModel
    unknown_pairs: List[Tuple[int, int]] = Field(
        default_factory=list,
        description="Ordered waypoint pairs whose distance could not be quoted.",
    )


class NavigationLinkModel(BaseModel):
    route: Literal["shortest", "longest"]
    text: str
    link: str
