"""User accounts and role profiles."""

from enum import Enum

from pydantic import EmailStr, Field

from tiffin.models.base import Record


class Role(str, Enum):
    """Application roles."""

    CUSTOMER = "customer"
    VENDOR = "vendor"
    DELIVERY_PARTNER = "delivery_partner"
    ADMIN = "admin"


class User(Record):
    """Login account. One role per user."""

    email: EmailStr
    password_hash: str
    first_name: str
    last_name: str | None = None
    phone: str | None = None
    role: Role = Role.CUSTOMER

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Vendor(Record):
    """Vendor profile; ``id`` is the owning user's id."""

    business_name: str
    license_number: str | None = None
    is_verified: bool = False


class DeliveryPartner(Record):
    """Delivery partner profile; ``id`` is the owning user's id."""

    vehicle_type: str | None = None
    vehicle_number: str | None = None
    is_available: bool = False
    is_verified: bool = False
    rating: float = Field(default=0.0, ge=0, le=5)
    current_latitude: float | None = Field(default=None, ge=-90, le=90)
    current_longitude: float | None = Field(default=None, ge=-180, le=180)

    @property
    def can_accept(self) -> bool:
        """Check if partner may claim deliveries."""
        return self.is_available and self.is_verified
