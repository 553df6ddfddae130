"""WebSocket stream of table changes.

Clients receive a small event for every committed insert or update on the
tables they asked for and refetch whatever view depends on it. Connections
authenticate with a bearer token in the ``token`` query parameter and only
hear about rows their role may see.
"""

import asyncio
import json
from contextlib import suppress
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect, status
from pydantic import BaseModel, ValidationError

from tiffin.errors import AuthenticationError
from tiffin.models import OrderStatus, Role, User
from tiffin.services.auth import AuthService
from tiffin.state.feed import ChangeEvent, Subscription
from tiffin.state.repository import Database
from tiffin.utils.logging import get_logger

logger = get_logger(__name__)

# Catalog tables anyone signed in may follow
PUBLIC_TABLES = frozenset({"stores", "menu_items", "offers", "reviews"})

ROLE_TABLES: dict[Role, frozenset[str]] = {
    Role.CUSTOMER: PUBLIC_TABLES
    | {"orders", "delivery_assignments", "notifications", "refunds"},
    Role.VENDOR: PUBLIC_TABLES | {"orders", "delivery_assignments", "notifications"},
    Role.DELIVERY_PARTNER: frozenset({"orders", "delivery_assignments", "notifications"}),
}


class WebSocketMessage(BaseModel):
    """Client to server message."""

    type: str  # "ping"
    metadata: dict[str, Any] = {}


def parse_tables(raw: str | None, known: set[str]) -> set[str]:
    """Tables named in a comma separated query value; empty means all."""
    if not raw:
        return set()
    tables = {name.strip() for name in raw.split(",") if name.strip()}
    unknown = tables - known
    if unknown:
        raise ValueError(f"Unknown tables: {', '.join(sorted(unknown))}")
    return tables


def allowed_tables(user: User, known: set[str]) -> set[str]:
    if user.role == Role.ADMIN:
        return set(known)
    return set(ROLE_TABLES.get(user.role, frozenset())) & known


async def _owns_order(db: Database, user: User, row: dict[str, Any]) -> bool:
    if user.role == Role.CUSTOMER:
        return row.get("customer_id") == str(user.id)
    if user.role == Role.VENDOR:
        store = await db.stores.get(row["store_id"])
        return store is not None and store.vendor_id == user.id
    return False


async def is_visible(db: Database, user: User, event: ChangeEvent) -> bool:
    """Whether ``user`` may learn that the row in ``event`` changed.

    Both the old and the new version of the row are considered, so a partner
    also hears about a delivery leaving the open pool.
    """
    if user.role == Role.ADMIN or event.table in PUBLIC_TABLES:
        return True

    user_id = str(user.id)
    rows = [row for row in (event.new, event.old) if row]

    if event.table == "notifications":
        return event.new.get("user_id") == user_id
    if event.table == "refunds":
        return event.new.get("customer_id") == user_id

    if event.table == "delivery_assignments":
        if user.role == Role.DELIVERY_PARTNER:
            return any(row.get("delivery_partner_id") in (None, user_id) for row in rows)
        order = await db.orders.get(event.new["order_id"])
        return order is not None and await _owns_order(
            db, user, order.model_dump(mode="json")
        )

    if event.table == "orders":
        if user.role == Role.DELIVERY_PARTNER:
            if any(row.get("status") == OrderStatus.DISPATCHED.value for row in rows):
                return True
            assignments = await db.delivery_assignments.where("order_id", event.new["id"])
            return any(a.delivery_partner_id == user.id for a in assignments)
        return await _owns_order(db, user, event.new)

    return False


async def forward_changes(
    websocket: WebSocket,
    subscription: Subscription,
    db: Database,
    user: User,
) -> None:
    """Push every event in ``subscription`` that ``user`` may see to the client."""
    while True:
        event = await subscription.next()
        if not await is_visible(db, user, event):
            continue
        row = event.new
        try:
            await websocket.send_json(
                {
                    "type": "change",
                    "table": event.table,
                    "event": event.event_type,
                    "id": row.get("id"),
                    "status": row.get("status"),
                    "at": event.at.isoformat(),
                }
            )
        except WebSocketDisconnect:
            logger.info("websocket_closed_while_sending", user_id=str(user.id))
            return


async def handle_change_stream(
    websocket: WebSocket,
    db: Database,
    tables: str | None = None,
    token: str | None = None,
) -> None:
    """
    Serve one change stream connection.

    Args:
        websocket: WebSocket connection
        db: Database whose change feed is streamed
        tables: Comma separated table names, every table the role may see when omitted
        token: Bearer token of the connecting user
    """
    try:
        if not token:
            raise AuthenticationError("Authentication required")
        user = await AuthService(db).authenticate(token)
    except AuthenticationError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return

    known = set(db.tables())
    try:
        requested = parse_tables(tables, known)
    except ValueError as e:
        await websocket.close(code=status.WS_1003_UNSUPPORTED_DATA, reason=str(e))
        return

    allowed = allowed_tables(user, known)
    forbidden = requested - allowed
    if forbidden:
        await websocket.close(
            code=status.WS_1008_POLICY_VIOLATION,
            reason=f"Not allowed: {', '.join(sorted(forbidden))}",
        )
        return
    wanted = requested or allowed

    await websocket.accept()
    logger.info(
        "websocket_connected", user_id=str(user.id), role=user.role.value, tables=sorted(wanted)
    )

    async with db.feed.subscribe(wanted) as subscription:
        await websocket.send_json({"type": "connected", "tables": sorted(wanted)})
        forwarder = asyncio.create_task(forward_changes(websocket, subscription, db, user))

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = WebSocketMessage(**json.loads(data))
                except (json.JSONDecodeError, TypeError, ValidationError) as e:
                    await websocket.send_json(
                        {
                            "type": "error",
                            "message": "Invalid message format",
                            "details": str(e),
                        }
                    )
                    continue

                if message.type == "ping":
                    await websocket.send_json({"type": "pong"})

        except WebSocketDisconnect:
            logger.info("websocket_client_disconnected", user_id=str(user.id))

        finally:
            forwarder.cancel()
            with suppress(asyncio.CancelledError):
                await forwarder
