"""HTTP client for quoting waypoint distances from OSRM."""

from __future__ import annotations

import logging
import math
import time

import httpx

from ...config import settings
from .providers import Coordinate, DistanceProviderError

logger = logging.getLogger(__name__)


class OSRMClient:
    """Distance provider backed by the OSRM ``route`` service."""

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds

    def _get_client(self) -> httpx.Client:
        # One client per call keeps worker threads from sharing a connection pool.
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
        )

    def _route_url(self, origin: Coordinate, destination: Coordinate) -> str:
        # OSRM expects lon,lat ordering.
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in (origin, destination))
        return f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

    @staticmethod
    def _parse_distance_km(data: dict) -> float:
        if data.get("code") != "Ok":
            raise DistanceProviderError(f"OSRM route request failed: {data.get('message', data.get('code'))}")
        routes = data.get("routes") or []
        if not routes:
            raise DistanceProviderError("OSRM response contains no routes.")
        distance_m = routes[0].get("distance")
        if not isinstance(distance_m, (int, float)) or not math.isfinite(distance_m) or distance_m < 0:
            raise DistanceProviderError(f"OSRM returned an invalid distance: {distance_m!r}")
        return float(distance_m) / 1000.0

    def quote_distance(self, origin: Coordinate, destination: Coordinate) -> float:
        """Driving distance in kilometres from ``origin`` to ``destination``."""
        url = self._route_url(origin, destination)
        params = {"overview": "false", "steps": "false"}

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    return self._parse_distance_km(response.json())
                except httpx.HTTPStatusError as e:
                    # 4xx other than rate limiting will not improve on retry.
                    if e.response.status_code < 500 and e.response.status_code != 429:
                        raise DistanceProviderError(
                            f"OSRM rejected route request ({e.response.status_code})"
                        ) from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise DistanceProviderError(f"OSRM route request failed: {e}") from e
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {self.max_retries} retries: {e}")
                        raise DistanceProviderError(f"OSRM route request timed out: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except ValueError as e:
                    # Body was not JSON.
                    raise DistanceProviderError(f"OSRM returned a malformed response: {e}") from e
        finally:
            client.close()


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by quoting a short known route."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        client = OSRMClient(base_url=base, timeout=5.0, max_retries=0)
        # Two points in central Berlin, available on public OSRM instances.
        client.quote_distance((52.517037, 13.388860), (52.496891, 13.385983))
        return True
    except (DistanceProviderError, ConnectionError, httpx.HTTPError):
        return False
