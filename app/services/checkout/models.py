"""Checkout models."""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from app.services.delivery.geo import Coordinate


class CartLine(BaseModel):
    """Cart item resolved against its product at checkout time."""

    cart_item_id: str
    product_id: str
    seller_id: str
    unit_price: Decimal
    quantity: int = Field(gt=0)


class SellerGroup(BaseModel):
    """Cart lines owned by a single seller."""

    seller_id: str
    lines: List[CartLine] = []

    @property
    def subtotal(self) -> Decimal:
        return sum((line.unit_price * line.quantity for line in self.lines), Decimal("0"))


class OrderItemDraft(BaseModel):
    """Order line to be written."""

    product_id: str
    quantity: int
    price_at_purchase: Decimal


class OrderDraft(BaseModel):
    """Order to be written for one seller group."""

    buyer_id: str
    seller_id: str
    subtotal: Decimal
    delivery_charge: int
    total_amount: Decimal
    delivery_address: str
    delivery_coordinate: Coordinate
    items: List[OrderItemDraft]


class ProductStock(BaseModel):
    """Stock level of a product after a read or decrement."""

    product_id: str
    stock_quantity: int
    in_stock: bool


def partition_by_seller(cart_lines: List[CartLine]) -> List[SellerGroup]:
    """
    Group cart lines by seller.

    Groups appear in order of each seller's first line, and lines keep their
    cart order within a group.
    """
    groups: dict[str, SellerGroup] = {}
    for line in cart_lines:
        group: Optional[SellerGroup] = groups.get(line.seller_id)
        if group is None:
            group = groups[line.seller_id] = SellerGroup(seller_id=line.seller_id)
        group.lines.append(line)
    return list(groups.values())
