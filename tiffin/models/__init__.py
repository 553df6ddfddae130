"""Data models for the marketplace."""

from tiffin.models.activity import (
    Notification,
    Refund,
    RefundStatus,
    Review,
    Transaction,
    TransactionStatus,
)
from tiffin.models.base import Record, utcnow
from tiffin.models.delivery import DeliveryAssignment, DeliveryStatus, Location
from tiffin.models.order import Order, OrderItem, OrderStatus
from tiffin.models.store import DiscountType, MenuItem, Offer, Store
from tiffin.models.user import DeliveryPartner, Role, User, Vendor

__all__ = [
    "Record",
    "utcnow",
    # Accounts
    "Role",
    "User",
    "Vendor",
    "DeliveryPartner",
    # Catalog
    "Store",
    "MenuItem",
    "Offer",
    "DiscountType",
    # Order
    "Order",
    "OrderItem",
    "OrderStatus",
    # Delivery
    "DeliveryAssignment",
    "DeliveryStatus",
    "Location",
    # Activity
    "Notification",
    "Review",
    "Refund",
    "RefundStatus",
    "Transaction",
    "TransactionStatus",
]
