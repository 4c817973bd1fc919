"""Order persistence service."""
from typing import Dict, FrozenSet, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from sqlalchemy.orm import selectinload

from app.core.errors import InvalidStatusTransition, NotFoundError, ValidationError
from app.db.models import Order, OrderStatus, UserRole

# Allowed forward moves; DELIVERED and CANCELLED are terminal.
STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_status(value: str) -> OrderStatus:
    """Parse a status string, raising ValidationError for unknown values."""
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status: {value}") from None


class OrderPersistenceService:
    """Service for reading orders and changing their status."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order_by_id(self, order_id: str) -> Optional[Order]:
        """Get order by ID with items."""
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items))
        )
        return result.scalar_one_or_none()

    async def list_orders_for_user(
        self, user_id: str, role: str, limit: int = 100
    ) -> List[Order]:
        """Buyers see their purchases, sellers their sales; newest first."""
        if role == UserRole.SELLER.value:
            condition = Order.seller_id == user_id
        else:
            condition = Order.buyer_id == user_id
        result = await self.db.execute(
            select(Order)
            .where(condition)
            .options(selectinload(Order.items))
            .order_by(desc(Order.created_at))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Move an order to ``status``.

        Raises:
            NotFoundError: order does not exist
            InvalidStatusTransition: move not allowed from the current status
        """
        order = await self.get_order_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")

        current = OrderStatus(order.status)
        if status not in STATUS_TRANSITIONS[current]:
            raise InvalidStatusTransition(
                f"Cannot change order status from {current} to {status}"
            )

        order.status = status.value
        await self.db.commit()
        return order
