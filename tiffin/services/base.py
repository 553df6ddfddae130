"""Base service class with functionality shared by every role's service."""

from typing import Any
from uuid import UUID

from tiffin.config import get_settings
from tiffin.errors import PermissionDeniedError
from tiffin.models import (
    DeliveryAssignment,
    DeliveryStatus,
    Notification,
    Order,
    OrderStatus,
    Role,
    Store,
    User,
)
from tiffin.state.repository import ConditionFailed, Database
from tiffin.utils.logging import get_logger


class BaseService:
    """Common plumbing: tables, settings, logging and notifications."""

    def __init__(self, db: Database):
        self.db = db
        self.settings = get_settings()
        self.logger = get_logger(self.__class__.__module__)

    @staticmethod
    def require_role(user: User, *roles: Role) -> None:
        """Raise unless ``user`` has one of ``roles``."""
        if user.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise PermissionDeniedError(f"Only {allowed} users can do this")

    @staticmethod
    def ensure_manages_store(user: User, store: Store) -> None:
        """Raise unless ``user`` owns ``store`` or is an admin."""
        if user.role == Role.ADMIN:
            return
        if user.role != Role.VENDOR or store.vendor_id != user.id:
            raise PermissionDeniedError("Not authorized to manage this store")

    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: str,
        /,
        **data: Any,
    ) -> Notification:
        """Create an in-app notification."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            data={key: str(value) for key, value in data.items()},
        )
        return await self.db.notifications.insert(notification)

    async def current_assignment(self, order_id: UUID) -> DeliveryAssignment | None:
        """Latest delivery assignment for an order.

        A cancelled assignment is only returned when no live one exists.
        """
        assignments = await self.db.delivery_assignments.where("order_id", order_id)
        live = [a for a in assignments if a.status != DeliveryStatus.CANCELLED]
        if live:
            return live[-1]
        return assignments[-1] if assignments else None

    async def announce_delivery(
        self, order: Order, store: Store
    ) -> DeliveryAssignment | None:
        """Make sure the order has an open assignment and tell partners about it.

        Returns ``None`` when the order stopped being dispatched while the
        assignment was being opened.
        """
        assignment = await self.current_assignment(order.id)
        if assignment is None or assignment.status == DeliveryStatus.CANCELLED:
            assignment = await self.db.delivery_assignments.insert(
                DeliveryAssignment(order_id=order.id)
            )
            current = await self.db.orders.require(order.id)
            if current.status != OrderStatus.DISPATCHED:
                await self._withdraw(assignment, current)
                return None

        partners = [p for p in await self.db.delivery_partners.all() if p.can_accept]
        for partner in partners:
            await self.notify(
                partner.id,
                "New Delivery Available",
                f"New order ready for delivery from {store.name}",
                "new_delivery",
                order_id=order.id,
                assignment_id=assignment.id,
            )

        self.logger.info(
            "delivery_announced",
            order_id=str(order.id),
            assignment_id=str(assignment.id),
            partners_notified=len(partners),
        )
        return assignment

    async def _withdraw(self, assignment: DeliveryAssignment, order: Order) -> None:
        try:
            await self.db.delivery_assignments.update(
                assignment.id,
                {"status": DeliveryStatus.CANCELLED},
                expect={"status": DeliveryStatus.PENDING, "delivery_partner_id": None},
            )
        except ConditionFailed as exc:
            self.logger.warning(
                "assignment_withdraw_failed",
                assignment_id=str(assignment.id),
                status=exc.current.status.value,
            )
        else:
            self.logger.info(
                "assignment_withdrawn",
                order_id=str(order.id),
                order_status=order.status.value,
            )
