"""Driving route resolution with a straight-line fallback."""
import logging
from math import isfinite
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from app.core.errors import ExternalServiceUnavailable
from app.services.delivery.geo import Coordinate, haversine_distance_km
from app.services.delivery.pricing import (
    DEFAULT_POLICY,
    DeliveryQuote,
    EstimateSource,
    PricingPolicy,
    price_delivery,
    round_half_up,
)

logger = logging.getLogger(__name__)

DIRECT_ROUTE_INSTRUCTION = "Direct route (no detailed directions available)"


class RouteResult(BaseModel):
    """Route geometry and directions between two points."""

    geometry_points: List[Coordinate]
    distance_km: float
    duration_minutes: int
    instructions: List[str] = []
    source: EstimateSource


class RouteResolver:
    """
    Resolves driving distance, duration and geometry from an OSRM-compatible
    routing service.

    Every public method degrades to a haversine estimate when the provider
    cannot answer, so callers always receive a result of the same shape.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 4.0,
        policy: PricingPolicy = DEFAULT_POLICY,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.policy = policy
        self.client = client

    async def quote_delivery(
        self, origin: Coordinate, destination: Coordinate
    ) -> DeliveryQuote:
        """Price a delivery from ``origin`` to ``destination``."""
        try:
            route = await self._fetch_route(origin, destination, detailed=False)
            distance_km, duration_minutes = self._distance_and_duration(route)
        except ExternalServiceUnavailable as e:
            logger.warning(f"[ROUTING] Quote falling back to straight-line distance: {e}")
            return price_delivery(
                haversine_distance_km(origin, destination),
                EstimateSource.FALLBACK,
                policy=self.policy,
            )

        return price_delivery(
            distance_km,
            EstimateSource.ROUTED,
            duration_minutes=duration_minutes,
            policy=self.policy,
        )

    async def resolve_route(
        self, origin: Coordinate, destination: Coordinate
    ) -> RouteResult:
        """Get the driving route with turn-by-turn instructions."""
        try:
            route = await self._fetch_route(origin, destination, detailed=True)
            distance_km, duration_minutes = self._distance_and_duration(route)
            geometry = self._parse_geometry(route)
            instructions = self._parse_instructions(route)
        except ExternalServiceUnavailable as e:
            logger.warning(f"[ROUTING] Route falling back to direct line: {e}")
            distance_km = haversine_distance_km(origin, destination)
            return RouteResult(
                geometry_points=[origin, destination],
                distance_km=round_half_up(distance_km, 2),
                duration_minutes=int(
                    round_half_up(distance_km * self.policy.fallback_minutes_per_km)
                ),
                instructions=[DIRECT_ROUTE_INSTRUCTION],
                source=EstimateSource.FALLBACK,
            )

        if len(geometry) < 2:
            geometry = [origin, destination]

        return RouteResult(
            geometry_points=geometry,
            distance_km=round_half_up(distance_km, 2),
            duration_minutes=duration_minutes,
            instructions=instructions,
            source=EstimateSource.ROUTED,
        )

    def _route_url(self, origin: Coordinate, destination: Coordinate) -> str:
        # OSRM takes lng,lat pairs
        return (
            f"{self.base_url}/route/v1/driving/"
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )

    async def _fetch_route(
        self, origin: Coordinate, destination: Coordinate, detailed: bool
    ) -> Dict[str, Any]:
        """
        Fetch the first route from the provider.

        Raises:
            ExternalServiceUnavailable: on any transport, HTTP or payload failure
        """
        if detailed:
            params = {"overview": "full", "geometries": "geojson", "steps": "true"}
        else:
            params = {"overview": "false"}
        url = self._route_url(origin, destination)

        try:
            if self.client is not None:
                response = await self.client.get(url, params=params, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise ExternalServiceUnavailable(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ExternalServiceUnavailable(f"invalid JSON from routing provider: {e}") from e

        routes = data.get("routes") if isinstance(data, dict) else None
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            raise ExternalServiceUnavailable("No route found")
        return routes[0]

    @staticmethod
    def _distance_and_duration(route: Dict[str, Any]) -> tuple[float, int]:
        """Return (km, minutes) from a provider route."""
        try:
            distance_m = float(route["distance"])
            duration_s = float(route["duration"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExternalServiceUnavailable(f"malformed route: {e!r}") from e
        if not (isfinite(distance_m) and isfinite(duration_s)) or distance_m < 0 or duration_s < 0:
            raise ExternalServiceUnavailable(
                f"implausible route: distance={distance_m}, duration={duration_s}"
            )
        return distance_m / 1000, int(round_half_up(duration_s / 60))

    @staticmethod
    def _parse_geometry(route: Dict[str, Any]) -> List[Coordinate]:
        geometry = route.get("geometry") or {}
        try:
            coordinates = geometry.get("coordinates") or []
            # Swap [lng, lat] to Coordinate(lat, lng)
            return [Coordinate(latitude=lat, longitude=lng) for lng, lat in coordinates]
        except (AttributeError, TypeError, ValueError) as e:
            raise ExternalServiceUnavailable(f"malformed route geometry: {e}") from e

    @staticmethod
    def _parse_instructions(route: Dict[str, Any]) -> List[str]:
        legs = route.get("legs") or []
        if not legs:
            return []
        try:
            steps = legs[0].get("steps") or []
            instructions = [(step.get("maneuver") or {}).get("instruction") for step in steps]
        except (AttributeError, KeyError, IndexError, TypeError) as e:
            raise ExternalServiceUnavailable(f"malformed route steps: {e!r}") from e
        return [text if isinstance(text, str) else "" for text in instructions]
