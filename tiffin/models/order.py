"""Order-related data models."""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from tiffin.models.base import Record


class OrderStatus(str, Enum):
    """Order status progression."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    DISPATCHED = "dispatched"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(BaseModel):
    """Menu item snapshot taken when the order was placed."""

    menu_item_id: UUID
    name: str
    quantity: int = Field(ge=1)
    price_at_order: Decimal = Field(ge=0)
    notes: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.price_at_order * self.quantity


class Order(Record):
    """Complete order details."""

    customer_id: UUID
    store_id: UUID
    status: OrderStatus = OrderStatus.PENDING

    items: list[OrderItem] = Field(default_factory=list)

    # Pricing
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    platform_fee: Decimal = Field(default=Decimal("0"), ge=0)
    packaging_charge: Decimal = Field(default=Decimal("0"), ge=0)
    gst: Decimal = Field(default=Decimal("0"), ge=0)
    tip: Decimal = Field(default=Decimal("0"), ge=0)
    discount_amount: Decimal = Field(default=Decimal("0"), ge=0)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)
    offer_code: str | None = None

    # Delivery details
    delivery_address: str
    delivery_latitude: float | None = None
    delivery_longitude: float | None = None
    distance_km: float | None = None
    estimated_delivery_minutes: int | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
