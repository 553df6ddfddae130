"""Stores, menus and offers."""

from datetime import datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from tiffin.errors import ConflictError, NotFoundError
from tiffin.models import DiscountType, MenuItem, Offer, Role, Store, User, utcnow
from tiffin.services.base import BaseService
from tiffin.services.pricing import (
    calculate_distance,
    delivery_fee,
    estimate_delivery_time,
    format_distance,
    is_fast_delivery,
)


FEATURED_MIN_RATING = 4.0


class StoreInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1)
    description: str | None = None
    phone: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    opening_time: time | None = None
    closing_time: time | None = None
    is_active: bool = True


class StoreUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    address: str | None = None
    description: str | None = None
    phone: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    opening_time: time | None = None
    closing_time: time | None = None
    is_active: bool | None = None


class MenuItemInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(ge=0)
    description: str | None = None
    category: str | None = None
    is_available: bool = True
    is_veg: bool = False
    preparation_time: int | None = Field(default=None, ge=0)


class MenuItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    price: Decimal | None = Field(default=None, ge=0)
    description: str | None = None
    category: str | None = None
    is_available: bool | None = None
    is_veg: bool | None = None
    preparation_time: int | None = Field(default=None, ge=0)


class OfferInput(BaseModel):
    code: str = Field(min_length=3, max_length=30)
    description: str = ""
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Decimal = Field(default=Decimal("0"), ge=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime


class OfferUpdate(BaseModel):
    description: str | None = None
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    valid_until: datetime | None = None
    is_active: bool | None = None


class StoreListing(BaseModel):
    """A store as shown to a browsing customer."""

    store: Store
    distance_km: float | None = None
    distance_label: str | None = None
    estimated_delivery_minutes: int | None = None
    is_fast_delivery: bool = False
    delivery_fee: Decimal


class PopularMenuItem(BaseModel):
    item: MenuItem
    store_name: str


def _changes(update: BaseModel) -> dict[str, Any]:
    return update.model_dump(exclude_unset=True)


class CatalogService(BaseService):
    """Vendor-managed catalogue and the customer's view of it."""

    async def _vendor_store(self, user: User, store_id: UUID) -> Store:
        store = await self.db.stores.require(store_id)
        self.ensure_manages_store(user, store)
        return store

    async def create_store(self, vendor: User, data: StoreInput) -> Store:
        self.require_role(vendor, Role.VENDOR)
        await self.db.vendors.require(vendor.id)

        store = await self.db.stores.insert(Store(vendor_id=vendor.id, **data.model_dump()))
        self.logger.info("store_created", store_id=str(store.id), vendor_id=str(vendor.id))
        return store

    async def update_store(self, user: User, store_id: UUID, data: StoreUpdate) -> Store:
        await self._vendor_store(user, store_id)
        return await self.db.stores.update(store_id, _changes(data))

    async def vendor_stores(self, vendor: User) -> list[Store]:
        stores = await self.db.stores.where("vendor_id", vendor.id)
        return sorted(stores, key=lambda s: s.created_at, reverse=True)

    async def create_menu_item(
        self, user: User, store_id: UUID, data: MenuItemInput
    ) -> MenuItem:
        await self._vendor_store(user, store_id)
        return await self.db.menu_items.insert(MenuItem(store_id=store_id, **data.model_dump()))

    async def update_menu_item(
        self, user: User, menu_item_id: UUID, data: MenuItemUpdate
    ) -> MenuItem:
        item = await self.db.menu_items.require(menu_item_id)
        await self._vendor_store(user, item.store_id)
        return await self.db.menu_items.update(menu_item_id, _changes(data))

    async def menu(self, store_id: UUID, include_unavailable: bool = False) -> list[MenuItem]:
        """A store's menu sorted by name."""
        await self.db.stores.require(store_id)
        items = await self.db.menu_items.where("store_id", store_id)
        if not include_unavailable:
            items = [item for item in items if item.is_available]
        return sorted(items, key=lambda item: item.name.lower())

    async def create_offer(self, user: User, store_id: UUID, data: OfferInput) -> Offer:
        await self._vendor_store(user, store_id)

        code = data.code.strip().upper()
        if await self.find_offer(store_id, code):
            raise ConflictError(f"Offer code {code} already exists for this store")

        values = data.model_dump()
        values["code"] = code
        values["valid_from"] = data.valid_from or utcnow()
        return await self.db.offers.insert(Offer(store_id=store_id, **values))

    async def update_offer(self, user: User, offer_id: UUID, data: OfferUpdate) -> Offer:
        offer = await self.db.offers.require(offer_id)
        await self._vendor_store(user, offer.store_id)
        return await self.db.offers.update(offer_id, _changes(data))

    async def find_offer(self, store_id: UUID, code: str) -> Offer | None:
        code = code.strip().upper()
        for offer in await self.db.offers.where("store_id", store_id):
            if offer.code == code:
                return offer
        return None

    async def store_offers(self, store_id: UUID, active_only: bool = True) -> list[Offer]:
        """Offers for a store, biggest discount value first."""
        now = utcnow()
        offers = await self.db.offers.where("store_id", store_id)
        if active_only:
            offers = [
                offer
                for offer in offers
                if offer.is_active and offer.valid_from <= now <= offer.valid_until
            ]
        return sorted(offers, key=lambda offer: offer.discount_value, reverse=True)

    async def _listed_stores(self) -> list[Store]:
        """Active stores whose vendor is verified."""
        stores = []
        for store in await self.db.stores.all():
            if not store.is_active:
                continue
            vendor = await self.db.vendors.get(store.vendor_id)
            if vendor is None or not vendor.is_verified:
                continue
            stores.append(store)
        return stores

    def _listing(
        self, store: Store, latitude: float | None, longitude: float | None
    ) -> StoreListing:
        if None in (latitude, longitude, store.latitude, store.longitude):
            return StoreListing(store=store, delivery_fee=delivery_fee(None, self.settings))

        distance = calculate_distance(store.latitude, store.longitude, latitude, longitude)
        return StoreListing(
            store=store,
            distance_km=distance,
            distance_label=format_distance(distance),
            estimated_delivery_minutes=estimate_delivery_time(distance, self.settings),
            is_fast_delivery=is_fast_delivery(distance, self.settings),
            delivery_fee=delivery_fee(distance, self.settings),
        )

    async def browse_stores(
        self,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> list[StoreListing]:
        """Open stores of verified vendors, nearest first.

        With a location, stores beyond the delivery radius are left out.
        """
        listings = [
            self._listing(store, latitude, longitude) for store in await self._listed_stores()
        ]
        listings = [
            listing
            for listing in listings
            if listing.distance_km is None
            or listing.distance_km <= self.settings.max_delivery_distance_km
        ]
        return sorted(
            listings,
            key=lambda listing: (listing.distance_km is None, listing.distance_km or 0),
        )

    async def featured_stores(
        self,
        latitude: float | None = None,
        longitude: float | None = None,
        limit: int = 6,
    ) -> list[StoreListing]:
        """Best rated stores (4 stars and up), highest rating first.

        Distance is filled in when a location is given but does not filter.
        """
        stores = [
            store
            for store in await self._listed_stores()
            if store.average_rating >= FEATURED_MIN_RATING
        ]
        stores.sort(key=lambda store: store.average_rating, reverse=True)
        return [self._listing(store, latitude, longitude) for store in stores[:limit]]

    async def popular_menu_items(self, limit: int = 6) -> list[PopularMenuItem]:
        """Available dishes across open stores, most expensive first."""
        items = []
        for store in await self._listed_stores():
            for item in await self.db.menu_items.where("store_id", store.id):
                if item.is_available:
                    items.append(PopularMenuItem(item=item, store_name=store.name))
        items.sort(key=lambda popular: popular.item.price, reverse=True)
        return items[:limit]

    async def get_store(self, store_id: UUID) -> Store:
        store = await self.db.stores.get(store_id)
        if store is None or not store.is_active:
            raise NotFoundError("Store not found")
        return store
