"""Checkout persistence."""
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.db.models import CartItem, Order, OrderItem, Product
from app.services.checkout.base import CheckoutRepository
from app.services.checkout.models import CartLine, OrderDraft, ProductStock

logger = logging.getLogger(__name__)


class SqlCheckoutRepository(CheckoutRepository):
    """Checkout repository backed by a SQLAlchemy session.

    Nothing here commits on its own; the caller owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_cart_lines(
        self, user_id: str, ids: Optional[List[str]] = None
    ) -> List[CartLine]:
        """Get cart lines joined with their product's seller and price."""
        query = (
            select(CartItem, Product)
            .join(Product, CartItem.product_id == Product.id)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at, CartItem.id)
        )
        if ids is not None:
            query = query.where(CartItem.id.in_(ids))

        result = await self.db.execute(query)
        rows = result.all()

        if ids is not None:
            found = {cart_item.id for cart_item, _ in rows}
            missing = [cart_item_id for cart_item_id in ids if cart_item_id not in found]
            if missing:
                raise NotFoundError(f"Cart items not found: {', '.join(missing)}")

        return [
            CartLine(
                cart_item_id=cart_item.id,
                product_id=product.id,
                seller_id=product.seller_id,
                unit_price=product.price,
                quantity=cart_item.quantity,
            )
            for cart_item, product in rows
        ]

    async def create_order(self, draft: OrderDraft) -> Order:
        """Add an order with its items and flush it."""
        order = Order(
            buyer_id=draft.buyer_id,
            seller_id=draft.seller_id,
            subtotal=draft.subtotal,
            delivery_charge=draft.delivery_charge,
            total_amount=draft.total_amount,
            delivery_address=draft.delivery_address,
            delivery_latitude=draft.delivery_coordinate.latitude,
            delivery_longitude=draft.delivery_coordinate.longitude,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price_at_purchase=item.price_at_purchase,
                )
                for item in draft.items
            ],
        )
        self.db.add(order)
        await self.db.flush()
        return order

    async def decrement_stock(self, product_id: str, quantity: int) -> ProductStock:
        """
        Take ``quantity`` off a product's stock in one conditional UPDATE.

        The in-stock flag is computed in the same statement, and the row only
        matches while enough stock remains.

        Raises:
            NotFoundError: product does not exist
            ValidationError: not enough stock left
        """
        remaining = Product.stock_quantity - quantity
        result = await self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=remaining, in_stock=(remaining > 0))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            stock = await self.get_stock(product_id)
            raise ValidationError(
                f"Insufficient stock for product {product_id}: "
                f"{stock.stock_quantity} available, {quantity} requested"
            )
        return await self.get_stock(product_id)

    async def get_stock(self, product_id: str) -> ProductStock:
        """Read stock columns directly, bypassing any cached Product instance."""
        result = await self.db.execute(
            select(Product.stock_quantity, Product.in_stock).where(Product.id == product_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"Product {product_id} not found")
        return ProductStock(
            product_id=product_id,
            stock_quantity=row.stock_quantity,
            in_stock=bool(row.in_stock),
        )

    async def delete_cart_lines(self, user_id: str, ids: List[str]) -> int:
        """Delete only the buyer's listed cart items."""
        if not ids:
            return 0
        result = await self.db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id, CartItem.id.in_(ids))
            .execution_options(synchronize_session=False)
        )
        logger.debug(f"[CHECKOUT] Removed {result.rowcount} cart items for user {user_id}")
        return result.rowcount

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()
