"""Tests for the order and delivery state machines."""

import pytest

from tiffin.models import DeliveryStatus, OrderStatus
from tiffin.state.workflow import (
    DeliveryTransitions,
    OrderTransitions,
    VendorOrderView,
    can_cancel_order,
    vendor_order_view,
)


def test_order_happy_path_is_valid() -> None:
    """Each step of the vendor's lifecycle is an allowed transition."""
    path = [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.DISPATCHED,
        OrderStatus.DELIVERED,
    ]
    for current, following in zip(path, path[1:]):
        assert OrderTransitions.can_transition(current, following)


def test_order_cannot_skip_steps() -> None:
    assert not OrderTransitions.can_transition(OrderStatus.PENDING, OrderStatus.READY)
    assert not OrderTransitions.can_transition(OrderStatus.CONFIRMED, OrderStatus.DISPATCHED)
    assert not OrderTransitions.can_transition(OrderStatus.READY, OrderStatus.DELIVERED)


def test_order_cannot_go_backwards() -> None:
    assert not OrderTransitions.can_transition(OrderStatus.READY, OrderStatus.PREPARING)
    assert not OrderTransitions.can_transition(OrderStatus.DISPATCHED, OrderStatus.PENDING)


@pytest.mark.parametrize(
    "status",
    [
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.READY,
        OrderStatus.DISPATCHED,
    ],
)
def test_every_open_order_status_can_cancel(status: OrderStatus) -> None:
    assert OrderTransitions.can_transition(status, OrderStatus.CANCELLED)


@pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_terminal_order_statuses(status: OrderStatus) -> None:
    assert OrderTransitions.is_terminal(status)
    assert OrderTransitions.next_status(status) is None
    assert not any(OrderTransitions.can_transition(status, other) for other in OrderStatus)


def test_vendor_next_status_stops_at_dispatch() -> None:
    assert OrderTransitions.next_status(OrderStatus.PENDING) == OrderStatus.CONFIRMED
    assert OrderTransitions.next_status(OrderStatus.READY) == OrderStatus.DISPATCHED
    assert OrderTransitions.next_status(OrderStatus.DISPATCHED) is None


def test_delivery_transitions() -> None:
    assert DeliveryTransitions.can_transition(DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED)
    assert DeliveryTransitions.can_transition(DeliveryStatus.ACCEPTED, DeliveryStatus.PICKED_UP)
    assert DeliveryTransitions.can_transition(DeliveryStatus.PICKED_UP, DeliveryStatus.IN_TRANSIT)
    assert DeliveryTransitions.can_transition(DeliveryStatus.PICKED_UP, DeliveryStatus.DELIVERED)
    assert DeliveryTransitions.can_transition(DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED)

    assert not DeliveryTransitions.can_transition(
        DeliveryStatus.ACCEPTED, DeliveryStatus.IN_TRANSIT
    )
    assert not DeliveryTransitions.can_transition(
        DeliveryStatus.PENDING, DeliveryStatus.PICKED_UP
    )


def test_delivery_cannot_cancel_after_pickup() -> None:
    assert DeliveryTransitions.can_transition(DeliveryStatus.PENDING, DeliveryStatus.CANCELLED)
    assert DeliveryTransitions.can_transition(DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED)
    assert not DeliveryTransitions.can_transition(
        DeliveryStatus.PICKED_UP, DeliveryStatus.CANCELLED
    )
    assert not DeliveryTransitions.can_transition(
        DeliveryStatus.IN_TRANSIT, DeliveryStatus.CANCELLED
    )


def test_can_cancel_order() -> None:
    assert can_cancel_order(OrderStatus.PENDING)
    assert can_cancel_order(OrderStatus.DISPATCHED, DeliveryStatus.PENDING)
    assert can_cancel_order(OrderStatus.DISPATCHED, DeliveryStatus.ACCEPTED)

    assert not can_cancel_order(OrderStatus.DISPATCHED, DeliveryStatus.PICKED_UP)
    assert not can_cancel_order(OrderStatus.DISPATCHED, DeliveryStatus.IN_TRANSIT)
    assert not can_cancel_order(OrderStatus.DELIVERED, DeliveryStatus.DELIVERED)
    assert not can_cancel_order(OrderStatus.CANCELLED)


def test_vendor_order_view() -> None:
    assert vendor_order_view(OrderStatus.PREPARING, DeliveryStatus.PENDING) == VendorOrderView.ACTIVE
    assert (
        vendor_order_view(OrderStatus.DISPATCHED, DeliveryStatus.PENDING)
        == VendorOrderView.AWAITING_PICKUP
    )
    assert (
        vendor_order_view(OrderStatus.DISPATCHED, DeliveryStatus.ACCEPTED)
        == VendorOrderView.AWAITING_PICKUP
    )
    assert (
        vendor_order_view(OrderStatus.DISPATCHED, DeliveryStatus.IN_TRANSIT)
        == VendorOrderView.OUT_FOR_DELIVERY
    )
    assert vendor_order_view(OrderStatus.DELIVERED) == VendorOrderView.DELIVERED
    assert vendor_order_view(OrderStatus.CANCELLED) == VendorOrderView.CANCELLED
