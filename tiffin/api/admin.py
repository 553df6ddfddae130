"""Admin routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from tiffin.api.auth import UserResponse
from tiffin.api.dependencies import admin_user, get_db
from tiffin.models import DeliveryPartner, Order, Refund, RefundStatus, Role, User, Vendor
from tiffin.services import AdminService, RefundService
from tiffin.services.admin import PlatformStats
from tiffin.state.repository import Database

router = APIRouter(prefix="/admin", tags=["admin"])


# Request/Response Models


class RoleUpdate(BaseModel):
    role: Role


class VerificationUpdate(BaseModel):
    verified: bool = True


class RefundDecision(BaseModel):
    approve: bool
    reason: str | None = Field(default=None, max_length=500)


# Routes


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> PlatformStats:
    return await AdminService(db).platform_stats(user)


@router.get("/orders", response_model=list[Order])
async def recent_orders(
    limit: int = Query(default=20, ge=1, le=200),
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> list[Order]:
    return await AdminService(db).recent_orders(user, limit)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    role: Role | None = None,
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> list[UserResponse]:
    users = await AdminService(db).list_users(user, role)
    return [UserResponse.from_user(u) for u in users]


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: UUID,
    request: RoleUpdate,
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> UserResponse:
    updated = await AdminService(db).update_user_role(user, user_id, request.role)
    return UserResponse.from_user(updated)


@router.post("/vendors/{vendor_id}/verify", response_model=Vendor)
async def verify_vendor(
    vendor_id: UUID,
    request: VerificationUpdate = VerificationUpdate(),
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> Vendor:
    return await AdminService(db).verify_vendor(user, vendor_id, request.verified)


@router.post("/partners/{partner_id}/verify", response_model=DeliveryPartner)
async def verify_partner(
    partner_id: UUID,
    request: VerificationUpdate = VerificationUpdate(),
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> DeliveryPartner:
    return await AdminService(db).verify_partner(user, partner_id, request.verified)


@router.get("/refunds", response_model=list[Refund])
async def list_refunds(
    status_filter: RefundStatus | None = Query(default=None, alias="status"),
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> list[Refund]:
    return await RefundService(db).list_refunds(user, status_filter)


@router.post("/refunds/{refund_id}", response_model=Refund)
async def process_refund(
    refund_id: UUID,
    request: RefundDecision,
    user: User = Depends(admin_user),
    db: Database = Depends(get_db),
) -> Refund:
    return await RefundService(db).process_refund(
        user, refund_id, request.approve, request.reason
    )
