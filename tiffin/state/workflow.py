"""Order and delivery state machines.

The vendor drives an order up to ``dispatched``; from there the delivery
assignment carries the progress and only its ``delivered`` step moves the
order again. Cancellation is possible on both sides until the food has been
picked up.
"""

from enum import Enum

from tiffin.models.delivery import DeliveryStatus
from tiffin.models.order import OrderStatus


class OrderTransitions:
    """Valid order status transitions."""

    TRANSITIONS = {
        OrderStatus.PENDING: [OrderStatus.CONFIRMED, OrderStatus.CANCELLED],
        OrderStatus.CONFIRMED: [OrderStatus.PREPARING, OrderStatus.CANCELLED],
        OrderStatus.PREPARING: [OrderStatus.READY, OrderStatus.CANCELLED],
        OrderStatus.READY: [OrderStatus.DISPATCHED, OrderStatus.CANCELLED],
        OrderStatus.DISPATCHED: [OrderStatus.DELIVERED, OrderStatus.CANCELLED],
        OrderStatus.DELIVERED: [],
        OrderStatus.CANCELLED: [],
    }

    # Steps a vendor can take with the "advance" action.
    VENDOR_NEXT = {
        OrderStatus.PENDING: OrderStatus.CONFIRMED,
        OrderStatus.CONFIRMED: OrderStatus.PREPARING,
        OrderStatus.PREPARING: OrderStatus.READY,
        OrderStatus.READY: OrderStatus.DISPATCHED,
    }

    @classmethod
    def can_transition(cls, from_state: OrderStatus, to_state: OrderStatus) -> bool:
        """Check if a state transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def next_status(cls, current: OrderStatus) -> OrderStatus | None:
        """The vendor's next step from ``current``, if any."""
        return cls.VENDOR_NEXT.get(current)

    @classmethod
    def is_terminal(cls, state: OrderStatus) -> bool:
        return not cls.TRANSITIONS.get(state)


class DeliveryTransitions:
    """Valid delivery assignment status transitions."""

    TRANSITIONS = {
        DeliveryStatus.PENDING: [DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED],
        DeliveryStatus.ACCEPTED: [DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED],
        DeliveryStatus.PICKED_UP: [DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED],
        DeliveryStatus.IN_TRANSIT: [DeliveryStatus.DELIVERED],
        DeliveryStatus.DELIVERED: [],
        DeliveryStatus.CANCELLED: [],
    }

    PICKED_UP_STATES = (
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.IN_TRANSIT,
        DeliveryStatus.DELIVERED,
    )

    ACTIVE_STATES = (
        DeliveryStatus.ACCEPTED,
        DeliveryStatus.PICKED_UP,
        DeliveryStatus.IN_TRANSIT,
    )

    @classmethod
    def can_transition(cls, from_state: DeliveryStatus, to_state: DeliveryStatus) -> bool:
        """Check if a state transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def is_terminal(cls, state: DeliveryStatus) -> bool:
        return not cls.TRANSITIONS.get(state)


def can_cancel_order(
    order_status: OrderStatus,
    delivery_status: DeliveryStatus | None = None,
) -> bool:
    """Whether an order may still be cancelled.

    Not once it is delivered or cancelled, and not once a partner has the
    food in hand.
    """
    if OrderTransitions.is_terminal(order_status):
        return False
    if delivery_status in DeliveryTransitions.PICKED_UP_STATES:
        return False
    return True


class VendorOrderView(str, Enum):
    """How an order is grouped on the vendor's order board."""

    ACTIVE = "active"
    AWAITING_PICKUP = "awaiting_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


def vendor_order_view(
    order_status: OrderStatus,
    delivery_status: DeliveryStatus | None = None,
) -> VendorOrderView:
    """Map the order and delivery vocabularies onto the vendor's board."""
    if order_status == OrderStatus.DELIVERED:
        return VendorOrderView.DELIVERED
    if order_status == OrderStatus.CANCELLED:
        return VendorOrderView.CANCELLED
    if order_status == OrderStatus.DISPATCHED:
        if delivery_status in (DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT):
            return VendorOrderView.OUT_FOR_DELIVERY
        return VendorOrderView.AWAITING_PICKUP
    return VendorOrderView.ACTIVE
