"""Store, menu and offer models."""

from datetime import datetime, time, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import Field, field_validator

from tiffin.models.base import Record


class Store(Record):
    """A vendor's storefront."""

    vendor_id: UUID
    name: str
    address: str
    description: str | None = None
    phone: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    opening_time: time | None = None
    closing_time: time | None = None
    is_active: bool = True
    average_rating: float = 0.0
    review_count: int = 0


class MenuItem(Record):
    """Dish sold by a store."""

    store_id: UUID
    name: str
    price: Decimal = Field(ge=0)
    description: str | None = None
    category: str | None = None
    is_available: bool = True
    is_veg: bool = False
    preparation_time: int | None = Field(default=None, ge=0)


class DiscountType(str, Enum):
    """How an offer reduces the bill."""

    PERCENTAGE = "percentage"
    FLAT = "flat"


class Offer(Record):
    """Promo code valid at one store."""

    store_id: UUID
    code: str
    description: str = ""
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    usage_count: int = 0
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @field_validator("valid_from", "valid_until")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
