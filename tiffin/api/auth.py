"""Registration, login and the caller's own account."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr

from tiffin.api.dependencies import get_current_user, get_db, get_optional_user
from tiffin.models import Notification, Role, User
from tiffin.services import AuthService, NotificationService
from tiffin.services.auth import RegisterRequest
from tiffin.state.repository import Database

router = APIRouter(prefix="/auth", tags=["auth"])


# Request/Response Models


class UserResponse(BaseModel):
    """Public view of a user account."""

    id: UUID
    email: EmailStr
    first_name: str
    last_name: str | None
    phone: str | None
    role: Role
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls.model_validate(user.model_dump(exclude={"password_hash"}))


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class MarkedReadResponse(BaseModel):
    updated: int


# Routes


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    actor: User | None = Depends(get_optional_user),
    db: Database = Depends(get_db),
) -> UserResponse:
    """
    Create an account.

    Customers sign up on their own; vendor and delivery partner accounts need
    an admin bearer token.
    """
    user = await AuthService(db).register(request, actor)
    return UserResponse.from_user(user)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest, db: Database = Depends(get_db)) -> TokenResponse:
    service = AuthService(db)
    token = await service.login(request.email, request.password)
    user = await service.find_by_email(request.email)
    return TokenResponse(access_token=token, user=UserResponse.from_user(user))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(user)


@router.get("/me/notifications", response_model=list[Notification])
async def list_notifications(
    unread_only: bool = False,
    limit: int = 50,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> list[Notification]:
    return await NotificationService(db).list_notifications(user, unread_only, limit)


@router.post("/me/notifications/{notification_id}/read", response_model=Notification)
async def mark_notification_read(
    notification_id: UUID,
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> Notification:
    return await NotificationService(db).mark_read(user, notification_id)


@router.post("/me/notifications/read-all", response_model=MarkedReadResponse)
async def mark_all_notifications_read(
    user: User = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> MarkedReadResponse:
    return MarkedReadResponse(updated=await NotificationService(db).mark_all_read(user))
