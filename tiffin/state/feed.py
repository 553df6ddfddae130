"""Change feed for table writes.

Events are refetch signals: subscribers are told *that* a row changed and
reload whatever view depends on it.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Literal

from pydantic import BaseModel, Field

from tiffin.models.base import utcnow
from tiffin.state.manager import StateManager
from tiffin.utils.logging import get_logger

logger = get_logger(__name__)


class ChangeEvent(BaseModel):
    """One committed insert or update."""

    table: str
    event_type: Literal["INSERT", "UPDATE"]
    new: dict[str, Any]
    old: dict[str, Any] | None = None
    at: datetime = Field(default_factory=utcnow)


class Subscription:
    """Queue of events for a set of tables (all tables when empty)."""

    def __init__(self, tables: set[str] | None = None, maxsize: int = 1000):
        self.tables = tables or set()
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=maxsize)

    def wants(self, event: ChangeEvent) -> bool:
        return not self.tables or event.table in self.tables

    async def next(self, timeout: float | None = None) -> ChangeEvent:
        """Wait for the next event."""
        return await asyncio.wait_for(self.queue.get(), timeout=timeout)


class ChangeFeed:
    """Fans committed writes out to local subscribers and Redis pub/sub."""

    def __init__(self, state: StateManager):
        self.state = state
        self._subscriptions: list[Subscription] = []

    @staticmethod
    def channel(table: str) -> str:
        return f"changes:{table}"

    async def emit(
        self,
        table: str,
        event_type: Literal["INSERT", "UPDATE"],
        new: dict[str, Any],
        old: dict[str, Any] | None = None,
    ) -> ChangeEvent:
        """Publish a change to every interested listener."""
        event = ChangeEvent(table=table, event_type=event_type, new=new, old=old)

        await self.state.publish(self.channel(table), event.model_dump_json())

        for subscription in self._subscriptions:
            if not subscription.wants(event):
                continue
            try:
                subscription.queue.put_nowait(event)
            except asyncio.QueueFull:
                # Slow consumer; it will catch up on its next refetch.
                logger.warning("change_feed_subscriber_full", table=table)

        return event

    @asynccontextmanager
    async def subscribe(
        self,
        tables: set[str] | None = None,
    ) -> AsyncGenerator[Subscription, None]:
        """Register a subscription for the lifetime of the context."""
        subscription = Subscription(tables)
        self._subscriptions.append(subscription)
        logger.debug("change_feed_subscribed", tables=sorted(subscription.tables))
        try:
            yield subscription
        finally:
            self._subscriptions.remove(subscription)
            logger.debug("change_feed_unsubscribed")
