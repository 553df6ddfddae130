"""Account registration, password login and bearer tokens."""

import asyncio
import base64
import hashlib
from datetime import timedelta
from uuid import UUID

import bcrypt
import jwt
from pydantic import BaseModel, EmailStr, Field

from tiffin.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationFailedError,
)
from tiffin.models import DeliveryPartner, Role, User, Vendor, utcnow
from tiffin.services.base import BaseService


class RegisterRequest(BaseModel):
    """Sign-up payload for any role."""

    email: EmailStr = Field(max_length=255)
    password: str = Field(min_length=8, max_length=100)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str | None = Field(default=None, max_length=50)
    phone: str | None = Field(default=None, pattern=r"^\+?[1-9]\d{1,14}$")
    role: Role = Role.CUSTOMER

    # Vendor specific
    business_name: str | None = Field(default=None, min_length=1, max_length=100)
    license_number: str | None = Field(default=None, max_length=50)

    # Delivery partner specific
    vehicle_type: str | None = Field(default=None, max_length=30)
    vehicle_number: str | None = Field(default=None, max_length=20)


def _bcrypt_input(password: str) -> bytes:
    """SHA-256 digest of the password, base64 encoded.

    bcrypt only reads the first 72 bytes of its input, so passwords are
    reduced to a fixed 44 byte form first.
    """
    return base64.b64encode(hashlib.sha256(password.encode()).digest())


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_bcrypt_input(password), bcrypt.gensalt()).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_bcrypt_input(password), password_hash.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


class AuthService(BaseService):
    """Creates accounts and issues / checks JWTs."""

    EMAIL_INDEX = "users:email"

    async def register(self, request: RegisterRequest, actor: User | None = None) -> User:
        """Create a user and its role profile.

        Customers sign themselves up; vendor and delivery partner accounts are
        created by an admin. Admin accounts are never created here.
        """
        if request.role == Role.ADMIN:
            raise PermissionDeniedError("Admin accounts cannot be registered")
        if request.role != Role.CUSTOMER:
            if actor is None:
                raise AuthenticationError(
                    "Admin authentication required for non-customer registration"
                )
            if actor.role != Role.ADMIN:
                raise PermissionDeniedError(
                    "Only admins can register vendors or delivery partners"
                )
        if request.role == Role.VENDOR and not request.business_name:
            raise ValidationFailedError("Business name is required for vendor registration")

        user = User(
            email=request.email,
            password_hash=await asyncio.to_thread(hash_password, request.password),
            first_name=request.first_name,
            last_name=request.last_name,
            phone=request.phone,
            role=request.role,
        )
        return await self.create_user(user, request)

    async def create_user(self, user: User, request: RegisterRequest | None = None) -> User:
        """Store ``user`` after claiming its email, plus any role profile."""
        email = str(user.email).lower()
        if not await self.db.state.hsetnx(self.EMAIL_INDEX, email, str(user.id)):
            raise ConflictError("An account with this email already exists")

        await self.db.users.insert(user)

        if user.role == Role.VENDOR:
            await self.db.vendors.insert(
                Vendor(
                    id=user.id,
                    business_name=(request.business_name if request else None)
                    or "Pending Business Name",
                    license_number=request.license_number if request else None,
                )
            )
        elif user.role == Role.DELIVERY_PARTNER:
            await self.db.delivery_partners.insert(
                DeliveryPartner(
                    id=user.id,
                    vehicle_type=request.vehicle_type if request else None,
                    vehicle_number=request.vehicle_number if request else None,
                )
            )

        self.logger.info("user_registered", user_id=str(user.id), role=user.role.value)
        if user.role in (Role.VENDOR, Role.DELIVERY_PARTNER):
            await self._announce_registration(user, request)
        return user

    async def _announce_registration(
        self, user: User, request: RegisterRequest | None = None
    ) -> None:
        """Tell every admin a vendor or partner is waiting for verification."""
        if user.role == Role.VENDOR:
            business = (request.business_name if request else None) or "Unknown Business"
            title = "New Vendor Registration"
            message = f"{business} ({user.full_name}) has registered and is pending verification."
        else:
            title = "New Delivery Partner Registration"
            message = f"{user.full_name} has registered and is pending verification."

        for admin in await self.db.users.where("role", Role.ADMIN):
            await self.notify(
                admin.id, title, message, "registration", user_id=user.id, role=user.role.value
            )

    async def find_by_email(self, email: str) -> User | None:
        user_id = await self.db.state.hget(self.EMAIL_INDEX, email.lower())
        if not user_id:
            return None
        return await self.db.users.get(user_id)

    async def login(self, email: str, password: str) -> str:
        """Check credentials and return a bearer token."""
        user = await self.find_by_email(email)
        if not user or not await asyncio.to_thread(
            verify_password, password, user.password_hash
        ):
            self.logger.warning("login_failed", email=email)
            raise AuthenticationError("Invalid credentials")

        self.logger.info("login_succeeded", user_id=str(user.id))
        return self.issue_token(user)

    def issue_token(self, user: User) -> str:
        expiration = utcnow() + timedelta(minutes=self.settings.access_token_expire_minutes)
        payload = {"sub": str(user.id), "role": user.role.value, "exp": expiration}
        return jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)

    def decode_token(self, token: str) -> dict:
        try:
            return jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")

    async def authenticate(self, token: str) -> User:
        """Resolve a bearer token to its user."""
        payload = self.decode_token(token)
        try:
            user_id = UUID(payload["sub"])
        except (KeyError, ValueError):
            raise AuthenticationError("Invalid token")

        user = await self.db.users.get(user_id)
        if user is None:
            raise AuthenticationError("User no longer exists")
        return user
