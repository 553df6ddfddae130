"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-test-suite")
os.environ.setdefault("LOG_FORMAT", "text")

from decimal import Decimal
from typing import AsyncGenerator

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tiffin.api.dependencies import get_db
from tiffin.main import app
from tiffin.models import MenuItem, Order, Role, Store, User
from tiffin.services import AuthService, OrderService
from tiffin.services.orders import PlaceOrderItem, PlaceOrderRequest
from tiffin.state.manager import StateManager
from tiffin.state.repository import Database

STORE_LAT, STORE_LNG = 12.9352, 77.6245
# Roughly 1.8 km from the store
NEAR_LAT, NEAR_LNG = 12.9500, 77.6300
# Roughly 29 km from the store
FAR_LAT, FAR_LNG = 13.2000, 77.6245


@pytest_asyncio.fixture
async def state_manager() -> AsyncGenerator[StateManager, None]:
    """Create a state manager backed by an in-memory Redis."""
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    manager = StateManager(redis_client=client)
    yield manager
    await client.flushall()
    await manager.disconnect()


@pytest_asyncio.fixture
async def db(state_manager: StateManager) -> Database:
    return Database(state_manager)


@pytest_asyncio.fixture
async def test_client(db: Database) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client wired to the test database."""
    app.dependency_overrides[get_db] = lambda: db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def auth_headers(db: Database, user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {AuthService(db).issue_token(user)}"}


async def make_user(db: Database, email: str, role: Role, first_name: str = "Test") -> User:
    """Store a user and its role profile without paying for password hashing."""
    user = User(
        email=email,
        password_hash="not-a-bcrypt-hash",
        first_name=first_name,
        last_name="User",
        phone="+919812345678",
        role=role,
    )
    return await AuthService(db).create_user(user)


# Sample data fixtures


@pytest_asyncio.fixture
async def admin(db: Database) -> User:
    return await make_user(db, "admin@example.com", Role.ADMIN, "Admin")


@pytest_asyncio.fixture
async def customer(db: Database) -> User:
    return await make_user(db, "customer@example.com", Role.CUSTOMER, "Meera")


@pytest_asyncio.fixture
async def other_customer(db: Database) -> User:
    return await make_user(db, "other@example.com", Role.CUSTOMER, "Other")


@pytest_asyncio.fixture
async def vendor(db: Database) -> User:
    """Create a verified vendor."""
    user = await make_user(db, "vendor@example.com", Role.VENDOR, "Vikram")
    await db.vendors.update(user.id, {"business_name": "Shah's Kitchen", "is_verified": True})
    return user


@pytest_asyncio.fixture
async def other_vendor(db: Database) -> User:
    user = await make_user(db, "vendor2@example.com", Role.VENDOR, "Nisha")
    await db.vendors.update(user.id, {"business_name": "Dosa Corner", "is_verified": True})
    return user


async def make_partner(db: Database, email: str, available: bool = True) -> User:
    """Create a verified delivery partner."""
    user = await make_user(db, email, Role.DELIVERY_PARTNER, "Ravi")
    await db.delivery_partners.update(
        user.id,
        {
            "is_available": available,
            "is_verified": True,
            "rating": 4.5,
            "current_latitude": STORE_LAT,
            "current_longitude": STORE_LNG,
        },
    )
    return user


@pytest_asyncio.fixture
async def partner(db: Database) -> User:
    return await make_partner(db, "rider1@example.com")


@pytest_asyncio.fixture
async def other_partner(db: Database) -> User:
    return await make_partner(db, "rider2@example.com")


@pytest_asyncio.fixture
async def store(db: Database, vendor: User) -> Store:
    return await db.stores.insert(
        Store(
            vendor_id=vendor.id,
            name="Shah's Kitchen",
            address="80 Feet Road, Koramangala",
            latitude=STORE_LAT,
            longitude=STORE_LNG,
        )
    )


@pytest_asyncio.fixture
async def menu(db: Database, store: Store) -> dict[str, MenuItem]:
    """Menu keyed by a short name; ``sold_out`` is unavailable."""
    items = {
        "thali": MenuItem(store_id=store.id, name="Veg Thali", price=Decimal("180")),
        "dosa": MenuItem(store_id=store.id, name="Masala Dosa", price=Decimal("90")),
        "sold_out": MenuItem(
            store_id=store.id, name="Sold Out Special", price=Decimal("150"), is_available=False
        ),
    }
    for item in items.values():
        await db.menu_items.insert(item)
    return items


def order_request(store: Store, menu: dict[str, MenuItem], **overrides) -> PlaceOrderRequest:
    """Two thalis delivered nearby."""
    values = {
        "store_id": store.id,
        "items": [PlaceOrderItem(menu_item_id=menu["thali"].id, quantity=2)],
        "delivery_address": "12 Residency Road",
        "delivery_latitude": NEAR_LAT,
        "delivery_longitude": NEAR_LNG,
    }
    values.update(overrides)
    return PlaceOrderRequest(**values)


@pytest_asyncio.fixture
async def order(
    db: Database, customer: User, store: Store, menu: dict[str, MenuItem]
) -> Order:
    """Create a pending order."""
    return await OrderService(db).place_order(customer, order_request(store, menu))


async def dispatch(db: Database, vendor: User, order: Order) -> Order:
    """Advance an order from pending to dispatched."""
    service = OrderService(db)
    for _ in range(4):
        order = await service.advance_order(vendor, order.id)
    return order


@pytest_asyncio.fixture
async def dispatched_order(db: Database, vendor: User, order: Order) -> Order:
    return await dispatch(db, vendor, order)
