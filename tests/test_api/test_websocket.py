"""Tests for the change stream WebSocket."""

import json
from collections.abc import Iterator
from decimal import Decimal

import fakeredis
import pytest
from conftest import auth_headers, make_partner, make_user, order_request
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from tiffin.api.dependencies import get_db
from tiffin.api.websocket import is_visible
from tiffin.main import app
from tiffin.models import MenuItem, Notification, Order, Role, Store, User
from tiffin.services import AuthService, OrderService
from tiffin.state.feed import ChangeEvent
from tiffin.state.manager import StateManager
from tiffin.state.repository import Database


@pytest.fixture
def stream_db() -> Database:
    """Database created outside any event loop so the test client's loop can own it."""
    return Database(StateManager(redis_client=fakeredis.FakeAsyncRedis(decode_responses=True)))


@pytest.fixture
def client(stream_db: Database) -> Iterator[TestClient]:
    app.dependency_overrides[get_db] = lambda: stream_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


async def seed(db: Database) -> tuple[User, User, Order]:
    """A customer with a pending order at a verified vendor's store."""
    customer = await make_user(db, "customer@example.com", Role.CUSTOMER, "Meera")
    vendor = await make_user(db, "vendor@example.com", Role.VENDOR, "Vikram")
    await db.vendors.update(vendor.id, {"business_name": "Shah's Kitchen", "is_verified": True})
    store = await db.stores.insert(
        Store(
            vendor_id=vendor.id,
            name="Shah's Kitchen",
            address="80 Feet Road, Koramangala",
            latitude=12.9352,
            longitude=77.6245,
        )
    )
    thali = await db.menu_items.insert(
        MenuItem(store_id=store.id, name="Veg Thali", price=Decimal("180"))
    )
    order = await OrderService(db).place_order(customer, order_request(store, {"thali": thali}))
    return customer, vendor, order


def token_for(db: Database, user: User) -> str:
    return AuthService(db).issue_token(user)


def test_change_stream(client: TestClient, stream_db: Database) -> None:
    customer, vendor, order = client.portal.call(seed, stream_db)
    token = token_for(stream_db, customer)

    with client.websocket_connect(f"/ws/changes?token={token}&tables=orders") as websocket:
        assert websocket.receive_json() == {"type": "connected", "tables": ["orders"]}

        websocket.send_text(json.dumps({"type": "ping"}))
        assert websocket.receive_json() == {"type": "pong"}

        response = client.post(
            f"/api/v1/vendor/orders/{order.id}/advance",
            headers=auth_headers(stream_db, vendor),
        )
        assert response.status_code == 200

        event = websocket.receive_json()
        assert event["type"] == "change"
        assert event["table"] == "orders"
        assert event["event"] == "UPDATE"
        assert event["id"] == str(order.id)
        assert event["status"] == "confirmed"


def test_change_stream_defaults_to_role_tables(client: TestClient, stream_db: Database) -> None:
    customer, _, _ = client.portal.call(seed, stream_db)

    with client.websocket_connect(
        f"/ws/changes?token={token_for(stream_db, customer)}"
    ) as websocket:
        tables = websocket.receive_json()["tables"]

    assert "orders" in tables
    assert "notifications" in tables
    assert "users" not in tables
    assert "transactions" not in tables


def test_invalid_messages_keep_the_stream_open(client: TestClient, stream_db: Database) -> None:
    customer, _, _ = client.portal.call(seed, stream_db)

    with client.websocket_connect(
        f"/ws/changes?token={token_for(stream_db, customer)}&tables=orders"
    ) as websocket:
        websocket.receive_json()
        websocket.send_text("not json")
        assert websocket.receive_json()["type"] == "error"
        websocket.send_text(json.dumps({"type": "ping"}))
        assert websocket.receive_json() == {"type": "pong"}


def test_change_stream_rejects_unknown_tables(client: TestClient, stream_db: Database) -> None:
    customer, _, _ = client.portal.call(seed, stream_db)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(
            f"/ws/changes?token={token_for(stream_db, customer)}&tables=orders,payments"
        ):
            pass

    assert exc_info.value.code == 1003


def test_change_stream_requires_token(client: TestClient, stream_db: Database) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/changes?tables=orders"):
            pass
    assert exc_info.value.code == 1008

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/changes?token=not-a-jwt&tables=orders"):
            pass
    assert exc_info.value.code == 1008


def test_customers_cannot_follow_private_tables(client: TestClient, stream_db: Database) -> None:
    customer, _, _ = client.portal.call(seed, stream_db)

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(
            f"/ws/changes?token={token_for(stream_db, customer)}&tables=users"
        ):
            pass

    assert exc_info.value.code == 1008


def order_event(order: Order, old: Order | None = None) -> ChangeEvent:
    return ChangeEvent(
        table="orders",
        event_type="UPDATE" if old else "INSERT",
        new=order.model_dump(mode="json"),
        old=old.model_dump(mode="json") if old else None,
    )


@pytest.mark.asyncio
async def test_order_changes_reach_only_the_people_involved(
    db: Database,
    admin: User,
    customer: User,
    other_customer: User,
    vendor: User,
    other_vendor: User,
    order: Order,
) -> None:
    event = order_event(order)

    assert await is_visible(db, admin, event)
    assert await is_visible(db, customer, event)
    assert await is_visible(db, vendor, event)
    assert not await is_visible(db, other_customer, event)
    assert not await is_visible(db, other_vendor, event)


@pytest.mark.asyncio
async def test_partners_see_the_open_pool_and_their_own_jobs(
    db: Database, vendor: User, partner: User, order: Order
) -> None:
    outsider = await make_partner(db, "rider3@example.com")
    assert not await is_visible(db, partner, order_event(order))

    service = OrderService(db)
    confirmed = await service.advance_order(vendor, order.id)
    preparing = await service.advance_order(vendor, order.id)
    ready = await service.advance_order(vendor, order.id)
    dispatched = await service.advance_order(vendor, order.id)
    assert not await is_visible(db, partner, order_event(preparing, confirmed))
    assert await is_visible(db, partner, order_event(dispatched, ready))

    [assignment] = await db.delivery_assignments.where("order_id", order.id)
    claimed = await db.delivery_assignments.update(
        assignment.id, {"delivery_partner_id": partner.id}
    )
    claim = ChangeEvent(
        table="delivery_assignments",
        event_type="UPDATE",
        new=claimed.model_dump(mode="json"),
        old=assignment.model_dump(mode="json"),
    )
    # The pool shrank for everyone
    assert await is_visible(db, outsider, claim)
    assert await is_visible(db, partner, claim)

    delivered = order.model_copy(update={"status": "delivered"})
    assert await is_visible(db, partner, order_event(delivered))
    assert not await is_visible(db, outsider, order_event(delivered))


@pytest.mark.asyncio
async def test_notifications_stay_private(
    db: Database, customer: User, other_customer: User
) -> None:
    notification = Notification(
        user_id=customer.id, title="Order update", message="On its way", type="order"
    )
    event = ChangeEvent(
        table="notifications", event_type="INSERT", new=notification.model_dump(mode="json")
    )

    assert await is_visible(db, customer, event)
    assert not await is_visible(db, other_customer, event)
