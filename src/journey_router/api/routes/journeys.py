"""Journey attempt route endpoints."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from ...persistence.attempts import AttemptNotFoundError
from ...schemas.routing import (
    JourneyRoutesResponse,
    MatrixStatsModel,
    NavigationLinkModel,
    RouteResultModel,
)
from ...services.routing import service as routing_service

router = APIRouter(prefix="/journeys", tags=["journeys"])


@router.post("/{attempt_id}/calculate", response_model=JourneyRoutesResponse, status_code=status.HTTP_200_OK)
def calculate(attempt_id: int) -> JourneyRoutesResponse:
    try:
        outcome = routing_service.calculate_journey_routes(attempt_id)
    except AttemptNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except routing_service.CalculationSupersededError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error calculating routes for journey attempt {attempt_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to calculate routes: {str(exc)}",
        ) from exc

    solution = outcome.solution
    return JourneyRoutesResponse(
        attempt_id=attempt_id,
        calculated=outcome.attempt.calculated,
        shortest=RouteResultModel(path=list(solution.shortest.path), distance=solution.shortest.distance),
        longest=RouteResultModel(path=list(solution.longest.path), distance=solution.longest.distance),
        matrix=MatrixStatsModel(
            pairs=outcome.stats.pairs,
            cache_hits=outcome.stats.cache_hits,
            provider_calls=outcome.stats.provider_calls,
            failures=outcome.stats.failures,
        ),
        unknown_pairs=outcome.unknown_pairs,
    )


@router.get("/{attempt_id}/navigation", response_model=NavigationLinkModel, status_code=status.HTTP_200_OK)
def navigation(
    attempt_id: int,
    route: Literal["shortest", "longest"] = Query(default="shortest", description="Which persisted route to link."),
) -> NavigationLinkModel:
    """Display text and maps link for a persisted route."""
    try:
        link = routing_service.navigation_for_attempt(attempt_id, route)
    except AttemptNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error building navigation link for journey attempt {attempt_id}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to build navigation link: {str(exc)}",
        ) from exc
    return NavigationLinkModel(route=route, text=link.text, link=link.link)
