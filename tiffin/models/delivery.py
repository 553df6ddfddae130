"""Delivery assignment models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from tiffin.models.base import Record


class DeliveryStatus(str, Enum):
    """Delivery status progression."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Location(BaseModel):
    """Geographic location."""

    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class DeliveryAssignment(Record):
    """Claimable delivery job for one order.

    Created pending with no partner; a partner claims it by moving it to
    ``accepted`` while both of those conditions still hold.
    """

    order_id: UUID
    delivery_partner_id: UUID | None = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    assigned_at: datetime | None = None
    picked_up_at: datetime | None = None
    delivered_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == DeliveryStatus.PENDING and self.delivery_partner_id is None
