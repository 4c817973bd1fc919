"""Delivery pricing policy."""
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from math import isfinite
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict


class EstimateSource(str, Enum):
    """Where a distance estimate came from."""

    ROUTED = "routed"  # Driving distance from the routing provider
    FALLBACK = "fallback"  # Straight-line haversine distance

    def __str__(self) -> str:
        return self.value


class PricingPolicy(BaseModel):
    """Fare constants for delivery quotes."""

    model_config = ConfigDict(frozen=True)

    base_fare: int = 15
    routed_rate_per_km: float = 3.0
    # Straight-line distance underestimates road distance, so it is charged higher.
    fallback_rate_per_km: float = 3.5
    fallback_minutes_per_km: float = 3.0

    def rate_for(self, source: EstimateSource) -> float:
        rates: Dict[EstimateSource, float] = {
            EstimateSource.ROUTED: self.routed_rate_per_km,
            EstimateSource.FALLBACK: self.fallback_rate_per_km,
        }
        return rates[EstimateSource(source)]


DEFAULT_POLICY = PricingPolicy()


class DeliveryQuote(BaseModel):
    """Priced delivery estimate. total_charge == base_fare + distance_fare."""

    model_config = ConfigDict(frozen=True)

    distance_km: float
    duration_minutes: int
    base_fare: int
    distance_fare: int
    total_charge: int
    source: EstimateSource


def round_half_up(value: float, places: int = 0) -> float:
    """Round halves up rather than to even."""
    exponent = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def price_delivery(
    distance_km: float,
    source: EstimateSource,
    duration_minutes: Optional[int] = None,
    policy: PricingPolicy = DEFAULT_POLICY,
) -> DeliveryQuote:
    """
    Price a delivery over ``distance_km``.

    Args:
        distance_km: Driving or straight-line distance in kilometres
        source: Which estimate produced the distance; selects the per-km rate
        duration_minutes: Provider-reported duration. Estimated from distance
            when omitted.
        policy: Fare constants

    Returns:
        DeliveryQuote whose total is the sum of its rounded parts

    Raises:
        ValueError: distance is negative or not finite
    """
    if not isfinite(distance_km) or distance_km < 0:
        raise ValueError(f"distance_km must be a non-negative finite number, got {distance_km}")
    source = EstimateSource(source)
    distance_fare = int(round_half_up(distance_km * policy.rate_for(source)))

    if duration_minutes is None:
        duration_minutes = int(round_half_up(distance_km * policy.fallback_minutes_per_km))

    return DeliveryQuote(
        distance_km=round_half_up(distance_km, 2),
        duration_minutes=duration_minutes,
        base_fare=policy.base_fare,
        distance_fare=distance_fare,
        total_charge=policy.base_fare + distance_fare,
        source=source,
    )
