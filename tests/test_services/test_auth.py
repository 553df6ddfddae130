"""Tests for registration, login and tokens."""

from datetime import timedelta

import jwt
import pytest

from tiffin.config import get_settings
from tiffin.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationFailedError,
)
from tiffin.models import Role, User, utcnow
from tiffin.services import AuthService
from tiffin.services.auth import RegisterRequest, hash_password, verify_password
from tiffin.state.repository import Database


def signup(**overrides) -> RegisterRequest:
    values = {
        "email": "new.customer@example.com",
        "password": "correct-horse",
        "first_name": "Kavya",
        "last_name": "Nair",
    }
    values.update(overrides)
    return RegisterRequest(**values)


def test_password_hashing() -> None:
    hashed = hash_password("correct-horse")

    assert hashed != "correct-horse"
    assert verify_password("correct-horse", hashed)
    assert not verify_password("wrong-horse", hashed)


def test_long_and_multibyte_passwords() -> None:
    long_password = "p" * 80
    hashed = hash_password(long_password)
    assert verify_password(long_password, hashed)
    assert not verify_password("p" * 79 + "q", hashed)

    multibyte = "पासवर्ड" * 10
    assert len(multibyte.encode()) > 72
    assert verify_password(multibyte, hash_password(multibyte))


def test_non_bcrypt_hash_never_matches() -> None:
    assert not verify_password("anything", "not-a-bcrypt-hash")


@pytest.mark.asyncio
async def test_customer_self_registration(db: Database) -> None:
    user = await AuthService(db).register(signup())

    assert user.role == Role.CUSTOMER
    assert await db.users.get(user.id) == user
    assert await db.vendors.get(user.id) is None


@pytest.mark.asyncio
async def test_email_is_unique_case_insensitively(db: Database) -> None:
    service = AuthService(db)
    await service.register(signup())

    with pytest.raises(ConflictError):
        await service.register(signup(email="New.Customer@Example.com"))


@pytest.mark.asyncio
async def test_vendor_registration_needs_admin(db: Database, customer: User) -> None:
    service = AuthService(db)
    request = signup(role=Role.VENDOR, business_name="Kavya's Bakes")

    with pytest.raises(AuthenticationError):
        await service.register(request)
    with pytest.raises(PermissionDeniedError):
        await service.register(request, actor=customer)


@pytest.mark.asyncio
async def test_admin_registers_vendor(db: Database, admin: User) -> None:
    request = signup(role=Role.VENDOR, business_name="Kavya's Bakes", license_number="FSSAI-1")

    user = await AuthService(db).register(request, actor=admin)

    vendor = await db.vendors.require(user.id)
    assert vendor.business_name == "Kavya's Bakes"
    assert vendor.license_number == "FSSAI-1"
    assert not vendor.is_verified


@pytest.mark.asyncio
async def test_vendor_requires_business_name(db: Database, admin: User) -> None:
    with pytest.raises(ValidationFailedError, match="Business name"):
        await AuthService(db).register(signup(role=Role.VENDOR), actor=admin)


@pytest.mark.asyncio
async def test_admin_registers_partner(db: Database, admin: User) -> None:
    request = signup(role=Role.DELIVERY_PARTNER, vehicle_type="bike", vehicle_number="KA-01-1234")

    user = await AuthService(db).register(request, actor=admin)

    partner = await db.delivery_partners.require(user.id)
    assert partner.vehicle_type == "bike"
    assert not partner.is_available
    assert not partner.is_verified


@pytest.mark.asyncio
async def test_admins_told_about_new_vendors_and_partners(db: Database, admin: User) -> None:
    service = AuthService(db)
    await service.register(signup(role=Role.VENDOR, business_name="Kavya's Bakes"), actor=admin)
    await service.register(
        signup(email="rider@example.com", role=Role.DELIVERY_PARTNER), actor=admin
    )
    await service.register(signup(email="diner@example.com"))

    alerts = await db.notifications.where("user_id", admin.id)

    assert [n.title for n in alerts] == [
        "New Vendor Registration",
        "New Delivery Partner Registration",
    ]
    assert "Kavya's Bakes (Kavya Nair)" in alerts[0].message
    assert alerts[1].data["role"] == "delivery_partner"


@pytest.mark.asyncio
async def test_admin_accounts_cannot_register(db: Database, admin: User) -> None:
    with pytest.raises(PermissionDeniedError):
        await AuthService(db).register(signup(role=Role.ADMIN), actor=admin)


def test_password_length_is_validated() -> None:
    with pytest.raises(ValueError):
        signup(password="short")


@pytest.mark.asyncio
async def test_login_issues_token(db: Database) -> None:
    service = AuthService(db)
    user = await service.register(signup())

    token = await service.login("NEW.CUSTOMER@example.com", "correct-horse")

    payload = service.decode_token(token)
    assert payload["sub"] == str(user.id)
    assert payload["role"] == "customer"
    assert await service.authenticate(token) == user


@pytest.mark.asyncio
async def test_login_rejects_bad_credentials(db: Database) -> None:
    service = AuthService(db)
    await service.register(signup())

    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        await service.login("new.customer@example.com", "wrong-password")
    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        await service.login("nobody@example.com", "correct-horse")


@pytest.mark.asyncio
async def test_tampered_token_rejected(db: Database, customer: User) -> None:
    token = AuthService(db).issue_token(customer)

    with pytest.raises(AuthenticationError, match="Invalid token"):
        await AuthService(db).authenticate(token + "x")


@pytest.mark.asyncio
async def test_expired_token_rejected(db: Database, customer: User) -> None:
    settings = get_settings()
    token = jwt.encode(
        {"sub": str(customer.id), "role": "customer", "exp": utcnow() - timedelta(minutes=1)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    with pytest.raises(AuthenticationError, match="Token expired"):
        await AuthService(db).authenticate(token)


@pytest.mark.asyncio
async def test_register_and_login_with_long_password(db: Database) -> None:
    service = AuthService(db)
    password = "horse-battery-staple-" * 4
    assert 72 < len(password) <= 100

    await service.register(signup(password=password))

    assert await service.login("new.customer@example.com", password)
    with pytest.raises(AuthenticationError):
        await service.login("new.customer@example.com", password[:72])
