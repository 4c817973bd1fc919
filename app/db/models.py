"""Database models."""
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, Enum):
    """Marketplace user roles."""

    BUYER = "BUYER"
    SELLER = "SELLER"

    def __str__(self) -> str:
        return self.value


class OrderStatus(str, Enum):
    """Order lifecycle states."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    def __str__(self) -> str:
        return self.value


class User(Base):
    """Buyer or seller account."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(String, default=UserRole.BUYER.value, nullable=False)  # BUYER, SELLER
    address = Column(Text, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    products = relationship("Product", back_populates="seller")


class Product(Base):
    """Product listed by a seller."""

    __tablename__ = "products"

    id = Column(String, primary_key=True, default=_new_id)
    seller_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    title = Column(String, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock_quantity = Column(Integer, default=0, nullable=False)
    in_stock = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    seller = relationship("User", back_populates="products")


class CartItem(Base):
    """Line in a buyer's cart."""

    __tablename__ = "cart_items"

    id = Column(String, primary_key=True, default=_new_id)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    product = relationship("Product")


class Order(Base):
    """Order placed with a single seller."""

    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=_new_id)
    buyer_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    seller_id = Column(String, ForeignKey("users.id"), index=True, nullable=False)
    status = Column(String, default=OrderStatus.PENDING.value, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_charge = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    delivery_address = Column(Text, nullable=False)
    delivery_latitude = Column(Float, nullable=False)
    delivery_longitude = Column(Float, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """Order line with the price snapshotted at purchase time."""

    __tablename__ = "order_items"

    id = Column(String, primary_key=True, default=_new_id)
    order_id = Column(String, ForeignKey("orders.id"), nullable=False)
    product_id = Column(String, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price_at_purchase = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
