"""Shared test fixtures and configuration."""
import pytest
import os
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import httpx
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables before importing app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from app.main import app
from app.db.database import get_db
from app.db.models import Base, CartItem, Product, User, UserRole
from app.core.dependencies import get_reverse_geocoder, get_route_resolver
from app.services.delivery.geo import Coordinate
from app.services.delivery.geocoding import ReverseGeocoder
from app.services.delivery.routing import RouteResolver


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

BANGALORE = Coordinate(latitude=12.9716, longitude=77.5946)
CHENNAI = Coordinate(latitude=13.0827, longitude=80.2707)


def osrm_response(
    distance_m: float = 12000.0,
    duration_s: float = 1500.0,
    coordinates=None,
    instructions=None,
) -> dict:
    """Build an OSRM route response body."""
    route = {"distance": distance_m, "duration": duration_s}
    if coordinates is not None:
        route["geometry"] = {"type": "LineString", "coordinates": coordinates}
    if instructions is not None:
        route["legs"] = [
            {"steps": [{"maneuver": {"instruction": text}} for text in instructions]}
        ]
    return {"code": "Ok", "routes": [route]}


def unreachable(request: httpx.Request) -> httpx.Response:
    """Transport handler simulating a provider that cannot be reached."""
    raise httpx.ConnectError("connection refused", request=request)


_mock_clients = []


def mock_client(handler) -> httpx.AsyncClient:
    """Client over a mocked transport; closed after each test."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    _mock_clients.append(client)
    return client


def make_resolver(handler, timeout: float = 4.0) -> RouteResolver:
    """Route resolver talking to a mocked provider."""
    return RouteResolver(base_url="http://osrm.test", timeout=timeout, client=mock_client(handler))


def make_geocoder(handler) -> ReverseGeocoder:
    """Reverse geocoder talking to a mocked provider."""
    return ReverseGeocoder(
        base_url="http://nominatim.test", user_agent="tests", client=mock_client(handler)
    )


@pytest.fixture(autouse=True)
async def close_mock_clients():
    """Close clients opened by make_resolver / make_geocoder."""
    yield
    while _mock_clients:
        await _mock_clients.pop().aclose()


@pytest.fixture
async def test_db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_db(test_db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
async def marketplace(test_db):
    """
    Seed two sellers, three products and two buyers' carts.

    Buyer 1's cart interleaves sellers: A (p-a1), B (p-b1), A (p-a2).
    """
    buyer = User(
        id="buyer-1", name="Asha", email="asha@example.com", role=UserRole.BUYER.value,
        address="12 Marina Road, Chennai",
        latitude=CHENNAI.latitude, longitude=CHENNAI.longitude,
    )
    other_buyer = User(
        id="buyer-2", name="Ravi", email="ravi@example.com", role=UserRole.BUYER.value,
    )
    seller_a = User(
        id="seller-a", name="Potter", email="potter@example.com", role=UserRole.SELLER.value,
        latitude=BANGALORE.latitude, longitude=BANGALORE.longitude,
    )
    seller_b = User(
        id="seller-b", name="Weaver", email="weaver@example.com", role=UserRole.SELLER.value,
    )
    vase = Product(
        id="p-a1", seller_id="seller-a", title="Clay vase",
        price=Decimal("100.00"), stock_quantity=5, in_stock=True,
    )
    bowl = Product(
        id="p-a2", seller_id="seller-a", title="Clay bowl",
        price=Decimal("100.00"), stock_quantity=1, in_stock=True,
    )
    scarf = Product(
        id="p-b1", seller_id="seller-b", title="Silk scarf",
        price=Decimal("50.00"), stock_quantity=10, in_stock=True,
    )
    start = datetime(2026, 1, 1, 12, 0, 0)
    cart = [
        CartItem(id="c1", user_id="buyer-1", product_id="p-a1", quantity=1, created_at=start),
        CartItem(
            id="c2", user_id="buyer-1", product_id="p-b1", quantity=1,
            created_at=start + timedelta(seconds=1),
        ),
        CartItem(
            id="c3", user_id="buyer-1", product_id="p-a2", quantity=1,
            created_at=start + timedelta(seconds=2),
        ),
        CartItem(id="c4", user_id="buyer-2", product_id="p-a1", quantity=2, created_at=start),
    ]
    test_db.add_all([buyer, other_buyer, seller_a, seller_b, vase, bowl, scarf, *cart])
    await test_db.commit()

    return SimpleNamespace(
        buyer=buyer,
        other_buyer=other_buyer,
        seller_a=seller_a,
        seller_b=seller_b,
        vase=vase,
        bowl=bowl,
        scarf=scarf,
        cart=cart,
    )


@pytest.fixture
def override_get_db(test_db):
    """Override get_db dependency with test database."""
    async def _override_get_db():
        yield test_db
    return _override_get_db


@pytest.fixture
def route_handler():
    """Routing provider behaviour for API tests; unreachable by default."""
    return unreachable


@pytest.fixture
async def api_client(override_get_db, route_handler):
    """Async client against the app with DB and providers overridden."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_route_resolver] = lambda: make_resolver(route_handler)
    app.dependency_overrides[get_reverse_geocoder] = lambda: make_geocoder(unreachable)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clear overrides
    app.dependency_overrides.clear()


def as_user(user_id: str) -> dict:
    """Identity header for a user."""
    return {"X-User-Id": user_id}
