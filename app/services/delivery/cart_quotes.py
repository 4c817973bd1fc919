"""Per-seller delivery quotes for a cart."""
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel

from app.services.checkout.models import CartLine, partition_by_seller
from app.services.delivery.geo import Coordinate
from app.services.delivery.pricing import DeliveryQuote
from app.services.delivery.routing import RouteResolver


class SellerDeliveryQuote(BaseModel):
    """Delivery quote for one seller's share of a cart."""

    seller_id: str
    subtotal: Decimal
    quote: Optional[DeliveryQuote] = None


async def quote_cart(
    resolver: RouteResolver,
    cart_lines: List[CartLine],
    seller_locations: Dict[str, Coordinate],
    destination: Coordinate,
) -> List[SellerDeliveryQuote]:
    """
    Quote delivery from each seller in the cart to ``destination``.

    Sellers without a stored location get no quote; checkout charges them 0.
    """
    quotes = []
    for group in partition_by_seller(cart_lines):
        origin = seller_locations.get(group.seller_id)
        quote = None
        if origin is not None:
            quote = await resolver.quote_delivery(origin, destination)
        quotes.append(
            SellerDeliveryQuote(seller_id=group.seller_id, subtotal=group.subtotal, quote=quote)
        )
    return quotes
