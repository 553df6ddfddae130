"""Platform administration."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from tiffin.errors import ValidationFailedError
from tiffin.models import (
    DeliveryPartner,
    Order,
    OrderStatus,
    RefundStatus,
    Role,
    TransactionStatus,
    User,
    Vendor,
)
from tiffin.services.base import BaseService


class PlatformStats(BaseModel):
    total_users: int
    users_by_role: dict[str, int]
    total_vendors: int
    verified_vendors: int
    total_stores: int
    active_stores: int
    total_partners: int
    active_partners: int
    total_orders: int
    orders_by_status: dict[str, int]
    pending_refunds: int
    total_revenue: Decimal


class AdminService(BaseService):
    """Admin-only views and account management."""

    async def platform_stats(self, admin: User) -> PlatformStats:
        self.require_role(admin, Role.ADMIN)

        users = await self.db.users.all()
        vendors = await self.db.vendors.all()
        stores = await self.db.stores.all()
        partners = await self.db.delivery_partners.all()
        orders = await self.db.orders.all()

        users_by_role = {role.value: 0 for role in Role}
        for user in users:
            users_by_role[user.role.value] += 1

        orders_by_status = {status.value: 0 for status in OrderStatus}
        for order in orders:
            orders_by_status[order.status.value] += 1

        completed = await self.db.transactions.where("status", TransactionStatus.COMPLETED)

        return PlatformStats(
            total_users=len(users),
            users_by_role=users_by_role,
            total_vendors=len(vendors),
            verified_vendors=len([v for v in vendors if v.is_verified]),
            total_stores=len(stores),
            active_stores=len([s for s in stores if s.is_active]),
            total_partners=len(partners),
            active_partners=len([p for p in partners if p.can_accept]),
            total_orders=len(orders),
            orders_by_status=orders_by_status,
            pending_refunds=len(await self.db.refunds.where("status", RefundStatus.PENDING)),
            total_revenue=sum((t.amount for t in completed), Decimal("0")),
        )

    async def recent_orders(self, admin: User, limit: int = 20) -> list[Order]:
        self.require_role(admin, Role.ADMIN)
        orders = await self.db.orders.all()
        return list(reversed(orders))[:limit]

    async def list_users(self, admin: User, role: Role | None = None) -> list[User]:
        self.require_role(admin, Role.ADMIN)
        users = await self.db.users.where("role", role) if role else await self.db.users.all()
        return list(reversed(users))

    async def verify_vendor(self, admin: User, vendor_id: UUID, verified: bool = True) -> Vendor:
        self.require_role(admin, Role.ADMIN)
        vendor = await self.db.vendors.update(vendor_id, {"is_verified": verified})

        await self.notify(
            vendor.id,
            "Account Verified" if verified else "Verification Revoked",
            (
                "Your vendor account is verified; your stores are now visible to customers"
                if verified
                else "Your vendor verification was revoked"
            ),
            "verification",
        )
        self.logger.info(
            "vendor_verification_changed", vendor_id=str(vendor.id), verified=verified
        )
        return vendor

    async def verify_partner(
        self, admin: User, partner_id: UUID, verified: bool = True
    ) -> DeliveryPartner:
        self.require_role(admin, Role.ADMIN)
        partner = await self.db.delivery_partners.update(partner_id, {"is_verified": verified})

        await self.notify(
            partner.id,
            "Account Verified" if verified else "Verification Revoked",
            (
                "You can now go online and accept deliveries"
                if verified
                else "Your delivery partner verification was revoked"
            ),
            "verification",
        )
        self.logger.info(
            "partner_verification_changed", partner_id=str(partner.id), verified=verified
        )
        return partner

    async def update_user_role(self, admin: User, user_id: UUID, role: Role) -> User:
        """Change a user's role, creating the role profile when missing."""
        self.require_role(admin, Role.ADMIN)
        if user_id == admin.id:
            raise ValidationFailedError("Admins cannot change their own role")

        user = await self.db.users.update(user_id, {"role": role})

        if role == Role.VENDOR and await self.db.vendors.get(user.id) is None:
            await self.db.vendors.insert(
                Vendor(id=user.id, business_name=f"{user.full_name}'s Business")
            )
        elif role == Role.DELIVERY_PARTNER and await self.db.delivery_partners.get(user.id) is None:
            await self.db.delivery_partners.insert(DeliveryPartner(id=user.id))

        self.logger.info("user_role_changed", user_id=str(user.id), role=role.value)
        return user
