"""Service modules, one per area of the marketplace."""

from tiffin.services.admin import AdminService
from tiffin.services.auth import AuthService
from tiffin.services.base import BaseService
from tiffin.services.catalog import CatalogService
from tiffin.services.deliveries import DeliveryService
from tiffin.services.orders import OrderService
from tiffin.services.refunds import RefundService
from tiffin.services.reviews import NotificationService, ReviewService

__all__ = [
    "BaseService",
    "AuthService",
    "CatalogService",
    "OrderService",
    "DeliveryService",
    "ReviewService",
    "NotificationService",
    "RefundService",
    "AdminService",
]
