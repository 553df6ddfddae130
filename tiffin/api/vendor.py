"""Vendor routes: stores, menus, offers and the order board."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from tiffin.api.dependencies import get_db, store_manager, vendor_user
from tiffin.models import MenuItem, Offer, Order, OrderStatus, Store, User
from tiffin.services import CatalogService, OrderService
from tiffin.services.catalog import (
    MenuItemInput,
    MenuItemUpdate,
    OfferInput,
    OfferUpdate,
    StoreInput,
    StoreUpdate,
)
from tiffin.services.orders import VendorOrderDetails, VendorStats
from tiffin.state.repository import Database
from tiffin.state.workflow import VendorOrderView

router = APIRouter(prefix="/vendor", tags=["vendor"])


# Request/Response Models


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# Stores


@router.get("/stores", response_model=list[Store])
async def my_stores(
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> list[Store]:
    return await CatalogService(db).vendor_stores(user)


@router.post("/stores", response_model=Store, status_code=status.HTTP_201_CREATED)
async def create_store(
    request: StoreInput,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> Store:
    return await CatalogService(db).create_store(user, request)


@router.patch("/stores/{store_id}", response_model=Store)
async def update_store(
    store_id: UUID,
    request: StoreUpdate,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> Store:
    return await CatalogService(db).update_store(user, store_id, request)


# Menu


@router.get("/stores/{store_id}/menu", response_model=list[MenuItem])
async def store_menu(
    store_id: UUID,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> list[MenuItem]:
    """Full menu including items marked unavailable."""
    store = await db.stores.require(store_id)
    CatalogService.ensure_manages_store(user, store)
    return await CatalogService(db).menu(store_id, include_unavailable=True)


@router.post(
    "/stores/{store_id}/menu",
    response_model=MenuItem,
    status_code=status.HTTP_201_CREATED,
)
async def create_menu_item(
    store_id: UUID,
    request: MenuItemInput,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> MenuItem:
    return await CatalogService(db).create_menu_item(user, store_id, request)


@router.patch("/menu-items/{menu_item_id}", response_model=MenuItem)
async def update_menu_item(
    menu_item_id: UUID,
    request: MenuItemUpdate,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> MenuItem:
    return await CatalogService(db).update_menu_item(user, menu_item_id, request)


# Offers


@router.get("/stores/{store_id}/offers", response_model=list[Offer])
async def store_offers(
    store_id: UUID,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> list[Offer]:
    store = await db.stores.require(store_id)
    CatalogService.ensure_manages_store(user, store)
    return await CatalogService(db).store_offers(store_id, active_only=False)


@router.post(
    "/stores/{store_id}/offers",
    response_model=Offer,
    status_code=status.HTTP_201_CREATED,
)
async def create_offer(
    store_id: UUID,
    request: OfferInput,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> Offer:
    return await CatalogService(db).create_offer(user, store_id, request)


@router.patch("/offers/{offer_id}", response_model=Offer)
async def update_offer(
    offer_id: UUID,
    request: OfferUpdate,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> Offer:
    return await CatalogService(db).update_offer(user, offer_id, request)


# Orders


@router.get("/orders", response_model=list[VendorOrderDetails])
async def vendor_orders(
    limit: int = Query(default=50, ge=1, le=200),
    view: VendorOrderView | None = None,
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> list[VendorOrderDetails]:
    """Order board, newest first, optionally narrowed to one column."""
    return await OrderService(db).vendor_orders(user, limit, view)


@router.patch("/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdate,
    user: User = Depends(store_manager),
    db: Database = Depends(get_db),
) -> Order:
    """Move an order along its lifecycle; admins may act on any store's orders."""
    return await OrderService(db).update_order_status(user, order_id, request.status)


@router.post("/orders/{order_id}/advance", response_model=Order)
async def advance_order(
    order_id: UUID,
    user: User = Depends(store_manager),
    db: Database = Depends(get_db),
) -> Order:
    return await OrderService(db).advance_order(user, order_id)


@router.post("/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: UUID,
    request: CancelOrderRequest = CancelOrderRequest(),
    user: User = Depends(store_manager),
    db: Database = Depends(get_db),
) -> Order:
    return await OrderService(db).cancel_order(user, order_id, request.reason)


@router.get("/stats", response_model=VendorStats)
async def vendor_stats(
    user: User = Depends(vendor_user),
    db: Database = Depends(get_db),
) -> VendorStats:
    return await OrderService(db).vendor_stats(user)
