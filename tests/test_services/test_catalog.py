"""Tests for store, menu and offer management."""

from datetime import timedelta
from decimal import Decimal

import pytest
from conftest import FAR_LAT, FAR_LNG, NEAR_LAT, NEAR_LNG

from tiffin.errors import ConflictError, NotFoundError, PermissionDeniedError
from tiffin.models import DiscountType, MenuItem, Role, Store, User, utcnow
from tiffin.services import CatalogService
from tiffin.services.catalog import (
    MenuItemInput,
    MenuItemUpdate,
    OfferInput,
    StoreInput,
    StoreUpdate,
)
from tiffin.state.repository import Database


@pytest.mark.asyncio
async def test_vendor_creates_store_and_menu(db: Database, vendor: User) -> None:
    service = CatalogService(db)

    store = await service.create_store(
        vendor,
        StoreInput(name="Idli House", address="Jayanagar", latitude=12.93, longitude=77.58),
    )
    item = await service.create_menu_item(
        vendor, store.id, MenuItemInput(name="Idli Vada", price=Decimal("70"), is_veg=True)
    )

    assert store.vendor_id == vendor.id
    assert [s.id for s in await service.vendor_stores(vendor)] == [store.id]
    assert [m.id for m in await service.menu(store.id)] == [item.id]


@pytest.mark.asyncio
async def test_only_vendors_create_stores(db: Database, customer: User) -> None:
    with pytest.raises(PermissionDeniedError):
        await CatalogService(db).create_store(customer, StoreInput(name="X", address="Y"))


@pytest.mark.asyncio
async def test_other_vendor_cannot_edit_store(
    db: Database, other_vendor: User, store: Store
) -> None:
    service = CatalogService(db)

    with pytest.raises(PermissionDeniedError):
        await service.update_store(other_vendor, store.id, StoreUpdate(name="Mine now"))
    with pytest.raises(PermissionDeniedError):
        await service.create_menu_item(
            other_vendor, store.id, MenuItemInput(name="Fake", price=Decimal("1"))
        )


@pytest.mark.asyncio
async def test_partial_updates(
    db: Database, vendor: User, store: Store, menu: dict[str, MenuItem]
) -> None:
    service = CatalogService(db)

    updated_store = await service.update_store(vendor, store.id, StoreUpdate(phone="+919800000099"))
    updated_item = await service.update_menu_item(
        vendor, menu["thali"].id, MenuItemUpdate(is_available=False)
    )

    assert updated_store.phone == "+919800000099"
    assert updated_store.name == store.name
    assert not updated_item.is_available
    assert updated_item.price == Decimal("180")


@pytest.mark.asyncio
async def test_menu_hides_unavailable_items(
    db: Database, store: Store, menu: dict[str, MenuItem]
) -> None:
    service = CatalogService(db)

    visible = [item.name for item in await service.menu(store.id)]
    everything = await service.menu(store.id, include_unavailable=True)

    assert visible == ["Masala Dosa", "Veg Thali"]
    assert len(everything) == 3


@pytest.mark.asyncio
async def test_offer_codes_unique_per_store(db: Database, vendor: User, store: Store) -> None:
    service = CatalogService(db)
    data = OfferInput(
        code="flat50",
        discount_type=DiscountType.FLAT,
        discount_value=Decimal("50"),
        valid_until=utcnow() + timedelta(days=7),
    )

    offer = await service.create_offer(vendor, store.id, data)

    assert offer.code == "FLAT50"
    assert [o.id for o in await service.store_offers(store.id)] == [offer.id]
    with pytest.raises(ConflictError):
        await service.create_offer(vendor, store.id, data)


@pytest.mark.asyncio
async def test_expired_offers_hidden(db: Database, vendor: User, store: Store) -> None:
    service = CatalogService(db)
    await service.create_offer(
        vendor,
        store.id,
        OfferInput(
            code="OLD10",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            valid_from=utcnow() - timedelta(days=10),
            valid_until=utcnow() - timedelta(days=1),
        ),
    )

    assert await service.store_offers(store.id) == []
    assert len(await service.store_offers(store.id, active_only=False)) == 1


@pytest.mark.asyncio
async def test_browse_stores_sorted_by_distance(
    db: Database, vendor: User, other_vendor: User, store: Store
) -> None:
    service = CatalogService(db)
    nearer = await db.stores.insert(
        Store(
            vendor_id=other_vendor.id,
            name="Dosa Corner",
            address="Next door",
            latitude=NEAR_LAT,
            longitude=NEAR_LNG,
        )
    )
    # Beyond the delivery radius
    await db.stores.insert(
        Store(
            vendor_id=other_vendor.id,
            name="Airport Cafe",
            address="Devanahalli",
            latitude=13.1986,
            longitude=77.7066,
        )
    )
    closed = await db.stores.insert(
        Store(vendor_id=vendor.id, name="Closed", address="Nowhere", is_active=False)
    )

    listings = await service.browse_stores(NEAR_LAT, NEAR_LNG)

    assert [listing.store.id for listing in listings] == [nearer.id, store.id]
    assert listings[0].distance_km == 0.0
    assert listings[0].distance_label == "0 m"
    assert listings[1].distance_label.endswith(" km")
    assert listings[0].delivery_fee == Decimal("0")
    assert listings[0].is_fast_delivery
    assert listings[1].estimated_delivery_minutes == 29
    assert closed.id not in {listing.store.id for listing in listings}


@pytest.mark.asyncio
async def test_browse_hides_unverified_vendors(
    db: Database, vendor: User, store: Store
) -> None:
    await db.vendors.update(vendor.id, {"is_verified": False})

    assert await CatalogService(db).browse_stores() == []


@pytest.mark.asyncio
async def test_browse_without_location(db: Database, store: Store) -> None:
    listings = await CatalogService(db).browse_stores()

    assert len(listings) == 1
    assert listings[0].distance_km is None
    assert listings[0].distance_label is None
    assert listings[0].delivery_fee == Decimal("40")


@pytest.mark.asyncio
async def test_inactive_store_not_found(db: Database, vendor: User, store: Store) -> None:
    await db.stores.update(store.id, {"is_active": False})

    with pytest.raises(NotFoundError):
        await CatalogService(db).get_store(store.id)


@pytest.mark.asyncio
async def test_admin_manages_any_store(db: Database, admin: User, store: Store) -> None:
    assert admin.role == Role.ADMIN
    updated = await CatalogService(db).update_store(admin, store.id, StoreUpdate(is_active=False))

    assert not updated.is_active


@pytest.mark.asyncio
async def test_featured_stores_are_highly_rated(
    db: Database, vendor: User, other_vendor: User, store: Store
) -> None:
    await db.stores.update(store.id, {"average_rating": 4.2})
    best = await db.stores.insert(
        Store(
            vendor_id=other_vendor.id,
            name="Dosa Corner",
            address="Next door",
            latitude=FAR_LAT,
            longitude=FAR_LNG,
            average_rating=4.8,
        )
    )
    await db.stores.insert(
        Store(vendor_id=other_vendor.id, name="Average", address="Elsewhere", average_rating=3.9)
    )
    await db.stores.insert(
        Store(
            vendor_id=vendor.id,
            name="Closed",
            address="Nowhere",
            average_rating=5.0,
            is_active=False,
        )
    )
    service = CatalogService(db)

    featured = await service.featured_stores(NEAR_LAT, NEAR_LNG)

    # Far away stores still feature; distance is informational here
    assert [listing.store.id for listing in featured] == [best.id, store.id]
    assert featured[0].distance_km > 20
    assert featured[1].distance_label is not None
    assert [listing.store.id for listing in await service.featured_stores(limit=1)] == [best.id]
    assert (await service.featured_stores())[0].distance_km is None


@pytest.mark.asyncio
async def test_popular_menu_items(
    db: Database, other_vendor: User, store: Store, menu: dict[str, MenuItem]
) -> None:
    other = await db.stores.insert(
        Store(vendor_id=other_vendor.id, name="Dosa Corner", address="Next door")
    )
    feast = await db.menu_items.insert(
        MenuItem(store_id=other.id, name="Feast Platter", price=Decimal("450"))
    )
    closed = await db.stores.insert(
        Store(vendor_id=other_vendor.id, name="Closed", address="Nowhere", is_active=False)
    )
    await db.menu_items.insert(
        MenuItem(store_id=closed.id, name="Ghost Biryani", price=Decimal("900"))
    )
    service = CatalogService(db)

    popular = await service.popular_menu_items()

    assert [p.item.id for p in popular] == [feast.id, menu["thali"].id, menu["dosa"].id]
    assert popular[0].store_name == "Dosa Corner"
    assert len(await service.popular_menu_items(limit=2)) == 2
