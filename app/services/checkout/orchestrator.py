"""Order placement."""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from app.core.errors import (
    CheckoutError,
    NotFoundError,
    PartialCompletionError,
    ValidationError,
)
from app.services.checkout.base import CheckoutRepository
from app.services.checkout.models import (
    CartLine,
    OrderDraft,
    OrderItemDraft,
    SellerGroup,
    partition_by_seller,
)
from app.services.delivery.geo import Coordinate

logger = logging.getLogger(__name__)


class CheckoutPhase(str, Enum):
    """Phases of order placement, in execution order."""

    CREATE_ORDERS = "create_orders"
    DECREMENT_STOCK = "decrement_stock"
    CLEAR_CART = "clear_cart"
    COMMIT = "commit"

    def __str__(self) -> str:
        return self.value


class OrderPlacementService:
    """Turns a buyer's cart into one order per seller."""

    def __init__(
        self,
        repository: CheckoutRepository,
        quote_max_age: Optional[timedelta] = timedelta(minutes=30),
    ):
        self.repository = repository
        self.quote_max_age = quote_max_age

    async def place_order(
        self,
        buyer_id: str,
        cart_lines: List[CartLine],
        delivery_address: str,
        delivery_coordinate: Coordinate,
        delivery_charges_by_seller: Dict[str, int],
        quoted_at: Optional[datetime] = None,
    ) -> List[Any]:
        """
        Place orders for the given cart lines.

        All writes happen in one transaction: orders for every seller group
        first, then stock decrements, then removal of the ordered cart items.

        Args:
            buyer_id: Buyer placing the order
            cart_lines: Lines to check out (may be a subset of the cart)
            delivery_address: Human-readable delivery address
            delivery_coordinate: Delivery location
            delivery_charges_by_seller: Quoted charge per seller; missing
                sellers are charged 0
            quoted_at: When the oldest of the charges was quoted

        Returns:
            Created orders, one per seller in order of first appearance

        Raises:
            ValidationError: bad input or insufficient stock; nothing written
            NotFoundError: a product disappeared; nothing written
            CheckoutError: a phase failed and was rolled back
            PartialCompletionError: rollback failed, or the commit outcome is unknown
        """
        self._validate(cart_lines, delivery_address, delivery_charges_by_seller, quoted_at)

        groups = partition_by_seller(cart_lines)
        logger.info(
            f"[CHECKOUT] Buyer {buyer_id} placing {len(cart_lines)} lines "
            f"across {len(groups)} sellers"
        )

        phase = CheckoutPhase.CREATE_ORDERS
        orders: List[Any] = []
        completed_sellers: List[str] = []
        try:
            for group in groups:
                draft = self._build_draft(
                    buyer_id,
                    group,
                    delivery_address,
                    delivery_coordinate,
                    delivery_charges_by_seller.get(group.seller_id, 0),
                )
                orders.append(await self.repository.create_order(draft))
                completed_sellers.append(group.seller_id)

            phase = CheckoutPhase.DECREMENT_STOCK
            for group in groups:
                for line in group.lines:
                    stock = await self.repository.decrement_stock(line.product_id, line.quantity)
                    if not stock.in_stock:
                        logger.info(f"[CHECKOUT] Product {line.product_id} is now out of stock")

            phase = CheckoutPhase.CLEAR_CART
            await self.repository.delete_cart_lines(
                buyer_id, [line.cart_item_id for line in cart_lines]
            )

            phase = CheckoutPhase.COMMIT
            await self.repository.commit()
        except (ValidationError, NotFoundError) as e:
            logger.info(f"[CHECKOUT] Rejected during {phase}: {e}")
            await self._rollback(phase, str(e), orders, completed_sellers)
            raise
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error(f"[CHECKOUT] Failed during {phase}: {reason}", exc_info=True)
            await self._rollback(phase, reason, orders, completed_sellers)
            if phase is CheckoutPhase.COMMIT:
                # The database may have applied the commit before the error surfaced
                raise PartialCompletionError(
                    phase.value,
                    f"{reason}; commit outcome unknown",
                    order_ids=[getattr(order, "id", None) for order in orders],
                    completed_sellers=list(completed_sellers),
                ) from e
            raise CheckoutError(phase.value, reason) from e

        logger.info(
            f"[CHECKOUT] Buyer {buyer_id} placed {len(orders)} orders: "
            f"{[getattr(order, 'id', None) for order in orders]}"
        )
        return orders

    def _validate(
        self,
        cart_lines: List[CartLine],
        delivery_address: str,
        delivery_charges_by_seller: Dict[str, int],
        quoted_at: Optional[datetime],
    ) -> None:
        if not cart_lines:
            raise ValidationError("empty cart")
        if not delivery_address or not delivery_address.strip():
            raise ValidationError("Delivery address is required")
        for seller_id, charge in delivery_charges_by_seller.items():
            if isinstance(charge, bool) or not isinstance(charge, int) or charge < 0:
                raise ValidationError(
                    f"Invalid delivery charge for seller {seller_id}: {charge!r}"
                )
        if quoted_at is not None and self.quote_max_age is not None:
            if quoted_at.tzinfo is None:
                quoted_at = quoted_at.replace(tzinfo=timezone.utc)
            if datetime.now(timezone.utc) - quoted_at > self.quote_max_age:
                raise ValidationError("delivery quote expired")

    @staticmethod
    def _build_draft(
        buyer_id: str,
        group: SellerGroup,
        delivery_address: str,
        delivery_coordinate: Coordinate,
        delivery_charge: int,
    ) -> OrderDraft:
        subtotal = group.subtotal
        return OrderDraft(
            buyer_id=buyer_id,
            seller_id=group.seller_id,
            subtotal=subtotal,
            delivery_charge=delivery_charge,
            total_amount=subtotal + Decimal(delivery_charge),
            delivery_address=delivery_address.strip(),
            delivery_coordinate=delivery_coordinate,
            items=[
                OrderItemDraft(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price_at_purchase=line.unit_price,
                )
                for line in group.lines
            ],
        )

    async def _rollback(
        self,
        phase: CheckoutPhase,
        reason: str,
        orders: List[Any],
        completed_sellers: List[str],
    ) -> None:
        """Roll back, escalating to PartialCompletionError if that fails."""
        try:
            await self.repository.rollback()
        except Exception as e:
            order_ids = [getattr(order, "id", None) for order in orders]
            logger.error(
                f"[CHECKOUT] Rollback failed after {phase} error; state may be partial - "
                f"orders: {order_ids}, sellers: {completed_sellers}",
                exc_info=True,
            )
            raise PartialCompletionError(
                phase.value,
                f"{reason}; rollback failed: {type(e).__name__}: {e}",
                order_ids=order_ids,
                completed_sellers=list(completed_sellers),
            ) from e
