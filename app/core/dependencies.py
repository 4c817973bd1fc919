"""FastAPI dependencies."""
from datetime import timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.database import get_db
from app.db.models import User
from app.services.checkout.orchestrator import OrderPlacementService
from app.services.delivery.geocoding import ReverseGeocoder
from app.services.delivery.pricing import PricingPolicy
from app.services.delivery.routing import RouteResolver
from app.services.persistence.checkout import SqlCheckoutRepository
from app.services.persistence.users import UserPersistenceService


def get_pricing_policy() -> PricingPolicy:
    """Get pricing policy from settings."""
    return PricingPolicy(
        base_fare=settings.base_fare,
        routed_rate_per_km=settings.routed_rate_per_km,
        fallback_rate_per_km=settings.fallback_rate_per_km,
        fallback_minutes_per_km=settings.fallback_minutes_per_km,
    )


def get_route_resolver(
    policy: PricingPolicy = Depends(get_pricing_policy),
) -> RouteResolver:
    """Get route resolver instance."""
    return RouteResolver(
        base_url=settings.routing_base_url,
        timeout=settings.routing_timeout_seconds,
        policy=policy,
    )


def get_reverse_geocoder() -> ReverseGeocoder:
    """Get reverse geocoder instance."""
    return ReverseGeocoder(
        base_url=settings.geocoding_base_url,
        user_agent=settings.geocoding_user_agent,
        timeout=settings.routing_timeout_seconds,
    )


def get_order_placement_service(
    db: AsyncSession = Depends(get_db),
) -> OrderPlacementService:
    """Get order placement service bound to the request session."""
    return OrderPlacementService(
        SqlCheckoutRepository(db),
        quote_max_age=timedelta(minutes=settings.delivery_quote_max_age_minutes),
    )


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the calling user from the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    user = await UserPersistenceService(db).get_user_by_id(x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid user")
    return user
