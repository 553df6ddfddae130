"""Typed tables stored in Redis.

Each row lives at ``{table}:{id}`` as JSON. Every table keeps a set of all
ids plus one set per indexed field value, which is how ``where`` queries are
answered. Index sets may briefly lag a row after an update, so ``where``
re-checks the field on the rows it loads.
"""

from enum import Enum
from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from tiffin.errors import NotFoundError
from tiffin.models import (
    DeliveryAssignment,
    DeliveryPartner,
    MenuItem,
    Notification,
    Offer,
    Order,
    Record,
    Refund,
    Review,
    Store,
    Transaction,
    User,
    Vendor,
)
from tiffin.models.base import utcnow
from tiffin.state.feed import ChangeFeed
from tiffin.state.manager import StateManager, get_state_manager
from tiffin.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Record)


class ConditionFailed(Exception):
    """A conditional update found the row in an unexpected state."""

    def __init__(self, current: Record):
        super().__init__("Row no longer matches the expected values")
        self.current = current


def _index_value(value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class Table(Generic[ModelT]):
    """CRUD access to one table of pydantic records."""

    def __init__(
        self,
        name: str,
        model: Type[ModelT],
        state: StateManager,
        feed: ChangeFeed,
        indexes: tuple[str, ...] = (),
        label: str | None = None,
    ):
        self.name = name
        self.model = model
        self.state = state
        self.feed = feed
        self.indexes = indexes
        self.label = label or model.__name__

    def _key(self, record_id: UUID | str) -> str:
        return f"{self.name}:{record_id}"

    def _index_key(self, field: str, value: Any) -> str:
        return f"{self.name}:by_{field}:{_index_value(value)}"

    @property
    def _ids_key(self) -> str:
        return f"{self.name}:ids"

    async def get(self, record_id: UUID | str) -> ModelT | None:
        """Fetch a row, or ``None`` if it does not exist."""
        data = await self.state.get(self._key(record_id))
        if not data:
            return None
        return self.model.model_validate(data)

    async def require(self, record_id: UUID | str) -> ModelT:
        """Fetch a row or raise ``NotFoundError``."""
        record = await self.get(record_id)
        if record is None:
            raise NotFoundError(f"{self.label} not found")
        return record

    async def get_many(self, record_ids: list[UUID | str]) -> list[ModelT]:
        values = await self.state.mget([self._key(record_id) for record_id in record_ids])
        return [self.model.model_validate(value) for value in values if value]

    async def insert(self, record: ModelT) -> ModelT:
        """Store a new row and announce it."""
        data = record.model_dump(mode="json")
        record_id = str(record.id)

        await self.state.set(self._key(record_id), data)
        await self.state.sadd(self._ids_key, record_id)
        for field in self.indexes:
            await self.state.sadd(self._index_key(field, getattr(record, field)), record_id)

        await self.feed.emit(self.name, "INSERT", new=data)
        logger.debug("row_inserted", table=self.name, id=record_id)
        return record

    async def update(
        self,
        record_id: UUID | str,
        changes: dict[str, Any],
        expect: dict[str, Any] | None = None,
    ) -> ModelT:
        """Apply ``changes`` to a row.

        With ``expect``, the write is conditional: it only happens if every
        listed field still holds the given value at commit time, otherwise
        ``ConditionFailed`` is raised carrying the row as it is now.
        """
        expect = expect or {}

        def mutate(current: Any) -> dict[str, Any]:
            if not current:
                raise NotFoundError(f"{self.label} not found")
            row = self.model.model_validate(current)
            for field, value in expect.items():
                if getattr(row, field) != value:
                    raise ConditionFailed(row)
            merged = {**current, **changes, "updated_at": utcnow()}
            return self.model.model_validate(merged).model_dump(mode="json")

        old, new = await self.state.compare_and_swap(self._key(record_id), mutate)
        before = self.model.model_validate(old)
        after = self.model.model_validate(new)

        for field in self.indexes:
            old_value, new_value = getattr(before, field), getattr(after, field)
            if old_value != new_value:
                await self.state.srem(self._index_key(field, old_value), str(record_id))
                await self.state.sadd(self._index_key(field, new_value), str(record_id))

        await self.feed.emit(self.name, "UPDATE", new=new, old=old)
        return after

    async def all(self) -> list[ModelT]:
        """All rows, oldest first."""
        ids = await self.state.smembers(self._ids_key)
        return self._sorted(await self.get_many(list(ids)))

    async def where(self, field: str, value: Any) -> list[ModelT]:
        """Rows whose indexed ``field`` equals ``value``, oldest first."""
        if field not in self.indexes:
            raise ValueError(f"{self.name}.{field} is not indexed")
        ids = await self.state.smembers(self._index_key(field, value))
        rows = await self.get_many(list(ids))
        return self._sorted([row for row in rows if getattr(row, field) == value])

    async def first_where(self, field: str, value: Any) -> ModelT | None:
        rows = await self.where(field, value)
        return rows[0] if rows else None

    async def count(self) -> int:
        return await self.state.scard(self._ids_key)

    @staticmethod
    def _sorted(rows: list[ModelT]) -> list[ModelT]:
        return sorted(rows, key=lambda row: row.created_at)


class Database:
    """All marketplace tables sharing one state manager and change feed."""

    def __init__(self, state: StateManager, feed: ChangeFeed | None = None):
        self.state = state
        self.feed = feed or ChangeFeed(state)

        self.users = Table("users", User, state, self.feed, indexes=("role",))
        self.vendors = Table("vendors", Vendor, state, self.feed)
        self.delivery_partners = Table(
            "delivery_partners", DeliveryPartner, state, self.feed, label="Delivery partner"
        )
        self.stores = Table("stores", Store, state, self.feed, indexes=("vendor_id",))
        self.menu_items = Table(
            "menu_items", MenuItem, state, self.feed, indexes=("store_id",), label="Menu item"
        )
        self.offers = Table("offers", Offer, state, self.feed, indexes=("store_id",))
        self.orders = Table(
            "orders", Order, state, self.feed, indexes=("customer_id", "store_id", "status")
        )
        self.delivery_assignments = Table(
            "delivery_assignments",
            DeliveryAssignment,
            state,
            self.feed,
            indexes=("order_id", "delivery_partner_id", "status"),
            label="Delivery assignment",
        )
        self.notifications = Table(
            "notifications", Notification, state, self.feed, indexes=("user_id",)
        )
        self.reviews = Table(
            "reviews", Review, state, self.feed, indexes=("store_id", "order_id")
        )
        self.refunds = Table(
            "refunds", Refund, state, self.feed, indexes=("order_id", "status")
        )
        self.transactions = Table(
            "transactions", Transaction, state, self.feed, indexes=("order_id", "status")
        )

    def tables(self) -> dict[str, Table]:
        """Every table keyed by name."""
        return {value.name: value for value in vars(self).values() if isinstance(value, Table)}


# Global database instance
_database: Database | None = None


async def get_database() -> Database:
    """Get the global database bound to the global state manager."""
    global _database
    if _database is None:
        _database = Database(await get_state_manager())
    return _database
