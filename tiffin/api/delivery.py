"""Delivery partner routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from tiffin.api.dependencies import get_db, partner_user
from tiffin.config import get_settings
from tiffin.models import DeliveryAssignment, DeliveryPartner, DeliveryStatus, User
from tiffin.services import DeliveryService
from tiffin.services.deliveries import DeliveryDetails, DeliveryStats
from tiffin.state.repository import Database

router = APIRouter(prefix="/delivery", tags=["delivery"])


# Request/Response Models


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class AvailabilityUpdate(BaseModel):
    is_available: bool


class LocationUpdate(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class PollingSettings(BaseModel):
    """How often partner apps should refresh their views."""

    pending_poll_seconds: int
    active_poll_seconds: int
    pending_deliveries_limit: int


# Routes


@router.get("/polling", response_model=PollingSettings)
async def polling_settings(user: User = Depends(partner_user)) -> PollingSettings:
    settings = get_settings()
    return PollingSettings(
        pending_poll_seconds=settings.pending_poll_seconds,
        active_poll_seconds=settings.active_poll_seconds,
        pending_deliveries_limit=settings.pending_deliveries_limit,
    )


@router.get("/profile", response_model=DeliveryPartner)
async def profile(
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryPartner:
    return await DeliveryService(db).partner_profile(user)


@router.get("/pending", response_model=list[DeliveryDetails])
async def pending_deliveries(
    limit: int | None = Query(default=None, ge=1, le=100),
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> list[DeliveryDetails]:
    """
    Deliveries open for claiming, oldest first.

    Clients poll this while the partner is online and idle.
    """
    return await DeliveryService(db).pending_deliveries(user, limit)


@router.post("/assignments/{assignment_id}/accept", response_model=DeliveryAssignment)
async def accept_delivery(
    assignment_id: UUID,
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryAssignment:
    """
    Claim a delivery.

    Losing a race answers 409 with ``ORDER_ALREADY_TAKEN`` or
    ``ORDER_NO_LONGER_AVAILABLE``; the client should refresh the pending list
    rather than retry.
    """
    return await DeliveryService(db).accept_delivery(user, assignment_id)


@router.patch("/assignments/{assignment_id}/status", response_model=DeliveryAssignment)
async def update_delivery_status(
    assignment_id: UUID,
    request: DeliveryStatusUpdate,
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryAssignment:
    return await DeliveryService(db).update_delivery_status(user, assignment_id, request.status)


@router.get("/active", response_model=DeliveryDetails | None)
async def active_delivery(
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryDetails | None:
    return await DeliveryService(db).active_delivery(user)


@router.get("/history", response_model=list[DeliveryDetails])
async def delivery_history(
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> list[DeliveryDetails]:
    return await DeliveryService(db).delivery_history(user, limit)


@router.get("/stats", response_model=DeliveryStats)
async def delivery_stats(
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryStats:
    return await DeliveryService(db).delivery_stats(user)


@router.put("/availability", response_model=DeliveryPartner)
async def set_availability(
    request: AvailabilityUpdate,
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryPartner:
    return await DeliveryService(db).set_availability(user, request.is_available)


@router.put("/location", response_model=DeliveryPartner)
async def update_location(
    request: LocationUpdate,
    user: User = Depends(partner_user),
    db: Database = Depends(get_db),
) -> DeliveryPartner:
    return await DeliveryService(db).update_location(user, request.latitude, request.longitude)
