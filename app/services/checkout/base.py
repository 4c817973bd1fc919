"""Checkout repository interface."""
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from app.services.checkout.models import CartLine, OrderDraft, ProductStock


class CheckoutRepository(ABC):
    """
    Persistence operations used by order placement.

    Writes are not visible to other sessions until ``commit``; ``rollback``
    discards everything since the last commit.
    """

    @abstractmethod
    async def find_cart_lines(
        self, user_id: str, ids: Optional[List[str]] = None
    ) -> List[CartLine]:
        """Get the buyer's cart lines, optionally restricted to ``ids``."""
        pass

    @abstractmethod
    async def create_order(self, draft: OrderDraft) -> Any:
        """Write an order with its items and return it."""
        pass

    @abstractmethod
    async def decrement_stock(self, product_id: str, quantity: int) -> ProductStock:
        """Atomically take ``quantity`` off stock and refresh the in-stock flag."""
        pass

    @abstractmethod
    async def get_stock(self, product_id: str) -> ProductStock:
        """Read the current stock of a product."""
        pass

    @abstractmethod
    async def delete_cart_lines(self, user_id: str, ids: List[str]) -> int:
        """Delete the buyer's cart items with the given ids."""
        pass

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass
