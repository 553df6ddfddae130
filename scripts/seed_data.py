"""Seed demo accounts, a store with its menu and an offer."""

import asyncio
from datetime import timedelta
from decimal import Decimal

from tiffin.models import DiscountType, MenuItem, Offer, Role, Store, User, utcnow
from tiffin.services.auth import AuthService, hash_password
from tiffin.state.manager import StateManager
from tiffin.state.repository import Database

DEMO_PASSWORD = "password123"


def demo_user(email: str, first_name: str, last_name: str, role: Role, phone: str) -> User:
    return User(
        email=email,
        password_hash=hash_password(DEMO_PASSWORD),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
    )


async def seed_accounts(db: Database) -> dict[str, User]:
    """Seed one account per role plus two delivery partners."""
    print("Seeding accounts...")

    auth = AuthService(db)
    users = {
        "admin": demo_user("admin@tiffin.dev", "Asha", "Rao", Role.ADMIN, "+919800000001"),
        "vendor": demo_user("vendor@tiffin.dev", "Vikram", "Shah", Role.VENDOR, "+919800000002"),
        "customer": demo_user(
            "customer@tiffin.dev", "Meera", "Iyer", Role.CUSTOMER, "+919800000003"
        ),
        "partner_1": demo_user(
            "rider1@tiffin.dev", "Ravi", "Kumar", Role.DELIVERY_PARTNER, "+919800000004"
        ),
        "partner_2": demo_user(
            "rider2@tiffin.dev", "Sana", "Khan", Role.DELIVERY_PARTNER, "+919800000005"
        ),
    }

    for user in users.values():
        await auth.create_user(user)
        if user.role == Role.VENDOR:
            await db.vendors.update(
                user.id, {"business_name": "Shah's Kitchen", "is_verified": True}
            )
        elif user.role == Role.DELIVERY_PARTNER:
            await db.delivery_partners.update(
                user.id,
                {
                    "vehicle_type": "bike",
                    "vehicle_number": f"KA-01-{user.phone[-4:]}",
                    "is_available": True,
                    "is_verified": True,
                    "rating": 4.7,
                    "current_latitude": 12.9352,
                    "current_longitude": 77.6245,
                },
            )
        print(f"  ✓ Added {user.full_name} ({user.role.value}, {user.email})")

    print(f"✓ Accounts seeded successfully (password: {DEMO_PASSWORD})\n")
    return users


async def seed_store(db: Database, vendor: User) -> None:
    """Seed a store with a menu and a welcome offer."""
    print("Seeding store and menu...")

    store = await db.stores.insert(
        Store(
            vendor_id=vendor.id,
            name="Shah's Kitchen",
            address="80 Feet Road, Koramangala, Bengaluru",
            description="Home-style thalis and snacks",
            phone="+919800000002",
            latitude=12.9352,
            longitude=77.6245,
        )
    )

    menu = [
        ("Veg Thali", Decimal("180"), "thali", True, 20),
        ("Paneer Butter Masala", Decimal("220"), "curry", True, 25),
        ("Chicken Biryani", Decimal("260"), "rice", False, 30),
        ("Masala Dosa", Decimal("90"), "breakfast", True, 15),
        ("Filter Coffee", Decimal("40"), "beverages", True, 5),
    ]
    for name, price, category, is_veg, prep in menu:
        await db.menu_items.insert(
            MenuItem(
                store_id=store.id,
                name=name,
                price=price,
                category=category,
                is_veg=is_veg,
                preparation_time=prep,
            )
        )
        print(f"  ✓ Added {name} (₹{price})")

    now = utcnow()
    await db.offers.insert(
        Offer(
            store_id=store.id,
            code="WELCOME50",
            description="50% off up to ₹100 on orders above ₹199",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("50"),
            min_order_amount=Decimal("199"),
            max_discount=Decimal("100"),
            usage_limit=100,
            valid_from=now,
            valid_until=now + timedelta(days=30),
        )
    )
    print("  ✓ Added offer WELCOME50")

    print("✓ Store seeded successfully\n")


async def main() -> None:
    """Run all seed functions."""
    print("\n" + "=" * 50)
    print("  Seeding Tiffin Marketplace Data")
    print("=" * 50 + "\n")

    state_manager = StateManager()
    await state_manager.connect()
    db = Database(state_manager)

    users = await seed_accounts(db)
    await seed_store(db, users["vendor"])

    await state_manager.disconnect()

    print("=" * 50)
    print("  ✓ All data seeded successfully!")
    print("=" * 50 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
