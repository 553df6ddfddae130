"""Customer-facing routes: browsing, ordering, tracking, reviews and refunds."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from tiffin.api.dependencies import customer_user, get_db
from tiffin.models import MenuItem, Offer, Order, Refund, RefundStatus, Review, Store, User
from tiffin.services import CatalogService, OrderService, RefundService, ReviewService
from tiffin.services.catalog import PopularMenuItem, StoreListing
from tiffin.services.orders import OrderTracking, PlaceOrderRequest
from tiffin.state.repository import Database

router = APIRouter(prefix="/customer", tags=["customer"])


# Request/Response Models


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class ReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class RefundRequest(BaseModel):
    order_id: UUID
    amount: Decimal = Field(gt=0)
    reason: str | None = Field(default=None, max_length=500)


# Browsing


@router.get("/stores", response_model=list[StoreListing])
async def browse_stores(
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    db: Database = Depends(get_db),
) -> list[StoreListing]:
    """Stores open for orders, nearest first when a location is given."""
    return await CatalogService(db).browse_stores(lat, lng)


@router.get("/stores/featured", response_model=list[StoreListing])
async def featured_stores(
    lat: float | None = Query(default=None, ge=-90, le=90),
    lng: float | None = Query(default=None, ge=-180, le=180),
    limit: int = Query(default=6, ge=1, le=50),
    db: Database = Depends(get_db),
) -> list[StoreListing]:
    """Highly rated stores for the home page."""
    return await CatalogService(db).featured_stores(lat, lng, limit)


@router.get("/menu/popular", response_model=list[PopularMenuItem])
async def popular_menu_items(
    limit: int = Query(default=6, ge=1, le=50),
    db: Database = Depends(get_db),
) -> list[PopularMenuItem]:
    return await CatalogService(db).popular_menu_items(limit)


@router.get("/stores/{store_id}", response_model=Store)
async def get_store(store_id: UUID, db: Database = Depends(get_db)) -> Store:
    return await CatalogService(db).get_store(store_id)


@router.get("/stores/{store_id}/menu", response_model=list[MenuItem])
async def store_menu(store_id: UUID, db: Database = Depends(get_db)) -> list[MenuItem]:
    return await CatalogService(db).menu(store_id)


@router.get("/stores/{store_id}/offers", response_model=list[Offer])
async def store_offers(store_id: UUID, db: Database = Depends(get_db)) -> list[Offer]:
    return await CatalogService(db).store_offers(store_id)


@router.get("/stores/{store_id}/reviews", response_model=list[Review])
async def store_reviews(store_id: UUID, db: Database = Depends(get_db)) -> list[Review]:
    return await ReviewService(db).store_reviews(store_id)


# Orders


@router.post("/orders", response_model=Order, status_code=status.HTTP_201_CREATED)
async def place_order(
    request: PlaceOrderRequest,
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> Order:
    return await OrderService(db).place_order(user, request)


@router.get("/orders", response_model=list[Order])
async def my_orders(
    limit: int = Query(default=50, ge=1, le=200),
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> list[Order]:
    return await OrderService(db).customer_orders(user, limit)


@router.get("/orders/{order_id}", response_model=Order)
async def get_order(
    order_id: UUID,
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> Order:
    return await OrderService(db).order_details(user, order_id)


@router.get("/orders/{order_id}/track", response_model=OrderTracking)
async def track_order(
    order_id: UUID,
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> OrderTracking:
    return await OrderService(db).track_order(user, order_id)


@router.post("/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: UUID,
    request: CancelOrderRequest = CancelOrderRequest(),
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> Order:
    return await OrderService(db).cancel_order(user, order_id, request.reason)


@router.post(
    "/orders/{order_id}/review",
    response_model=Review,
    status_code=status.HTTP_201_CREATED,
)
async def review_order(
    order_id: UUID,
    request: ReviewRequest,
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> Review:
    return await ReviewService(db).submit_review(user, order_id, request.rating, request.comment)


# Refunds


@router.post("/refunds", response_model=Refund, status_code=status.HTTP_201_CREATED)
async def request_refund(
    request: RefundRequest,
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> Refund:
    return await RefundService(db).request_refund(
        user, request.order_id, request.amount, request.reason
    )


@router.get("/refunds", response_model=list[Refund])
async def my_refunds(
    status_filter: RefundStatus | None = Query(default=None, alias="status"),
    user: User = Depends(customer_user),
    db: Database = Depends(get_db),
) -> list[Refund]:
    return await RefundService(db).list_refunds(user, status_filter)
