"""Order API endpoints."""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_user, get_order_placement_service
from app.core.errors import (
    CheckoutError,
    NotFoundError,
    PartialCompletionError,
    ValidationError,
)
from app.db.database import get_db
from app.db.models import Order, User, UserRole
from app.services.checkout.orchestrator import OrderPlacementService
from app.services.delivery.geo import Coordinate
from app.services.persistence.checkout import SqlCheckoutRepository
from app.services.persistence.orders import OrderPersistenceService, parse_status


router = APIRouter()
logger = logging.getLogger(__name__)


class DeliveryChargeInput(BaseModel):
    """Delivery charge quoted for one seller."""
    charge: int = Field(ge=0)
    quoted_at: Optional[datetime] = None


class PlaceOrderRequest(BaseModel):
    """Checkout request model."""
    cart_item_ids: Optional[List[str]] = None
    delivery_address: str
    delivery_location: Coordinate
    delivery_charges: Dict[str, DeliveryChargeInput] = {}


class StatusUpdateRequest(BaseModel):
    """Order status update request model."""
    status: str


class OrderItemResponse(BaseModel):
    """Order item response model."""
    id: str
    product_id: str
    quantity: int
    price_at_purchase: float

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response model."""
    id: str
    buyer_id: str
    seller_id: str
    status: str
    subtotal: float
    delivery_charge: int
    total_amount: float
    delivery_address: str
    delivery_latitude: float
    delivery_longitude: float
    created_at: str
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class PlaceOrderResponse(BaseModel):
    """Checkout response model."""
    orders: List[OrderResponse]


def to_order_response(order: Order) -> OrderResponse:
    """Convert an Order row to its response model."""
    return OrderResponse(
        id=order.id,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        status=order.status,
        subtotal=float(order.subtotal),
        delivery_charge=order.delivery_charge,
        total_amount=float(order.total_amount),
        delivery_address=order.delivery_address,
        delivery_latitude=order.delivery_latitude,
        delivery_longitude=order.delivery_longitude,
        created_at=order.created_at.isoformat() if order.created_at else "",
        items=[
            OrderItemResponse(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_purchase=float(item.price_at_purchase),
            )
            for item in order.items
        ],
    )


def _ensure_can_view(user: User, order: Order) -> None:
    if user.role == UserRole.BUYER.value and order.buyer_id != user.id:
        raise HTTPException(status_code=403, detail="Permission denied")
    if user.role == UserRole.SELLER.value and order.seller_id != user.id:
        raise HTTPException(status_code=403, detail="Permission denied")


@router.post("/api/orders", response_model=PlaceOrderResponse)
async def place_order(
    request: Request,
    body: PlaceOrderRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    placement: OrderPlacementService = Depends(get_order_placement_service),
):
    """Place one order per seller for the buyer's cart."""
    if user.role != UserRole.BUYER.value:
        raise HTTPException(status_code=403, detail="Buyer access required")

    logger.info(
        f"[ORDERS] Checkout requested - buyer: {user.id}, "
        f"items: {body.cart_item_ids if body.cart_item_ids is not None else 'all'}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    quote_times = [
        c.quoted_at if c.quoted_at.tzinfo else c.quoted_at.replace(tzinfo=timezone.utc)
        for c in body.delivery_charges.values()
        if c.quoted_at
    ]
    try:
        cart_lines = await SqlCheckoutRepository(db).find_cart_lines(
            user.id, body.cart_item_ids
        )
        orders = await placement.place_order(
            buyer_id=user.id,
            cart_lines=cart_lines,
            delivery_address=body.delivery_address,
            delivery_coordinate=body.delivery_location,
            delivery_charges_by_seller={
                seller_id: c.charge for seller_id, c in body.delivery_charges.items()
            },
            quoted_at=min(quote_times) if quote_times else None,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PartialCompletionError as e:
        logger.error(f"[ORDERS] Checkout left partial state - {e.to_detail()}")
        raise HTTPException(status_code=500, detail=e.to_detail())
    except CheckoutError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "checkout_failed", "phase": e.phase, "reason": e.reason},
        )

    return PlaceOrderResponse(orders=[to_order_response(order) for order in orders])


@router.get("/api/orders", response_model=List[OrderResponse])
async def list_orders(
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get the buyer's purchases or the seller's sales."""
    orders = await OrderPersistenceService(db).list_orders_for_user(user.id, user.role, limit)
    logger.info(f"[ORDERS] Found {len(orders)} orders for {user.role} {user.id}")
    return [to_order_response(order) for order in orders]


@router.get("/api/orders/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get a single order."""
    order = await OrderPersistenceService(db).get_order_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    _ensure_can_view(user, order)
    return to_order_response(order)


@router.patch("/api/orders/{order_id}", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update an order's status. Only the order's seller may do this."""
    service = OrderPersistenceService(db)
    try:
        status = parse_status(body.status)
        order = await service.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        if user.role != UserRole.SELLER.value or order.seller_id != user.id:
            raise HTTPException(status_code=403, detail="Permission denied")
        order = await service.update_status(order_id, status)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    logger.info(f"[ORDERS] Order {order_id} moved to {order.status} by seller {user.id}")
    return to_order_response(order)
