"""Delivery quote and routing API endpoints."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_reverse_geocoder, get_route_resolver
from app.core.errors import NotFoundError
from app.db.database import get_db
from app.db.models import User, UserRole
from app.services.delivery.cart_quotes import quote_cart
from app.services.delivery.geo import Coordinate
from app.services.delivery.geocoding import ReverseGeocoder
from app.services.delivery.pricing import DeliveryQuote
from app.services.delivery.routing import RouteResolver, RouteResult
from app.services.persistence.checkout import SqlCheckoutRepository
from app.services.persistence.users import UserPersistenceService


router = APIRouter()
logger = logging.getLogger(__name__)


class RouteRequest(BaseModel):
    """Origin/destination pair."""
    origin: Coordinate
    destination: Coordinate


class DeliveryQuoteResponse(BaseModel):
    """Delivery quote with the time it was computed."""
    quote: DeliveryQuote
    quoted_at: datetime


class CartQuoteRequest(BaseModel):
    """Cart quote request model."""
    destination: Coordinate
    cart_item_ids: Optional[List[str]] = None


class SellerQuoteResponse(BaseModel):
    """Quote for one seller in the cart."""
    seller_id: str
    subtotal: float
    quote: Optional[DeliveryQuote] = None


class CartQuoteResponse(BaseModel):
    """Per-seller quotes for a cart."""
    sellers: List[SellerQuoteResponse]
    quoted_at: datetime


class LocationResponse(BaseModel):
    """Reverse geocoding response model."""
    latitude: float
    longitude: float
    display_name: str


@router.post("/api/delivery/calculate", response_model=DeliveryQuoteResponse)
async def calculate_delivery(
    body: RouteRequest,
    resolver: RouteResolver = Depends(get_route_resolver),
):
    """Quote the delivery charge between two points."""
    quote = await resolver.quote_delivery(body.origin, body.destination)
    logger.info(
        f"[DELIVERY] Quote {body.origin} -> {body.destination}: "
        f"{quote.distance_km} km, charge {quote.total_charge} ({quote.source})"
    )
    return DeliveryQuoteResponse(quote=quote, quoted_at=datetime.now(timezone.utc))


@router.post("/api/delivery/route", response_model=RouteResult)
async def get_delivery_route(
    body: RouteRequest,
    resolver: RouteResolver = Depends(get_route_resolver),
):
    """Get the driving route between two points."""
    route = await resolver.resolve_route(body.origin, body.destination)
    logger.info(
        f"[DELIVERY] Route {body.origin} -> {body.destination}: "
        f"{len(route.geometry_points)} points ({route.source})"
    )
    return route


@router.get("/api/delivery/location", response_model=LocationResponse)
async def reverse_geocode(
    lat: float = Query(ge=-90, le=90),
    lng: float = Query(ge=-180, le=180),
    geocoder: ReverseGeocoder = Depends(get_reverse_geocoder),
):
    """Get a display name for a coordinate."""
    coordinate = Coordinate(latitude=lat, longitude=lng)
    name = await geocoder.location_name(coordinate)
    return LocationResponse(latitude=lat, longitude=lng, display_name=name)


@router.post("/api/delivery/cart-quotes", response_model=CartQuoteResponse)
async def quote_cart_delivery(
    request: Request,
    body: CartQuoteRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    resolver: RouteResolver = Depends(get_route_resolver),
):
    """Quote delivery for each seller in the buyer's cart."""
    if user.role != UserRole.BUYER.value:
        raise HTTPException(status_code=403, detail="Buyer access required")

    logger.info(
        f"[DELIVERY] Cart quote requested - buyer: {user.id}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        lines = await SqlCheckoutRepository(db).find_cart_lines(user.id, body.cart_item_ids)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    seller_ids = list(dict.fromkeys(line.seller_id for line in lines))
    locations = await UserPersistenceService(db).get_locations(seller_ids)
    quotes = await quote_cart(resolver, lines, locations, body.destination)

    return CartQuoteResponse(
        sellers=[
            SellerQuoteResponse(
                seller_id=entry.seller_id,
                subtotal=float(entry.subtotal),
                quote=entry.quote,
            )
            for entry in quotes
        ],
        quoted_at=datetime.now(timezone.utc),
    )
