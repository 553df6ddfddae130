"""State management modules."""

from tiffin.state.feed import ChangeEvent, ChangeFeed
from tiffin.state.manager import StateManager
from tiffin.state.repository import ConditionFailed, Database, Table
from tiffin.state.workflow import DeliveryTransitions, OrderTransitions, can_cancel_order

__all__ = [
    "StateManager",
    "ChangeFeed",
    "ChangeEvent",
    "Database",
    "Table",
    "ConditionFailed",
    "OrderTransitions",
    "DeliveryTransitions",
    "can_cancel_order",
]
