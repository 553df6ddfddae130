"""Delivery partner workflow: claiming, progressing and earnings."""

import calendar
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from tiffin.errors import (
    ConflictError,
    InvalidTransitionError,
    OrderAlreadyTakenError,
    OrderNoLongerAvailableError,
    PartnerUnavailableError,
    PermissionDeniedError,
)
from tiffin.models import (
    DeliveryAssignment,
    DeliveryPartner,
    DeliveryStatus,
    Order,
    OrderStatus,
    Role,
    Store,
    Transaction,
    TransactionStatus,
    User,
    utcnow,
)
from tiffin.services.base import BaseService
from tiffin.services.pricing import calculate_distance, partner_earnings
from tiffin.state.repository import ConditionFailed
from tiffin.state.workflow import DeliveryTransitions
from tiffin.utils.logging import TransitionLogger

transitions = TransitionLogger("delivery")


class DeliveryDetails(BaseModel):
    """An assignment with what a partner needs to decide on it."""

    assignment: DeliveryAssignment
    order: Order
    store_name: str
    store_address: str
    customer_name: str | None = None
    customer_phone: str | None = None
    distance_km: float | None = None
    distance_to_store_km: float | None = None
    estimated_earnings: Decimal


class DeliveryStats(BaseModel):
    today_deliveries: int
    today_earnings: Decimal
    week_deliveries: int
    week_earnings: Decimal
    month_deliveries: int
    month_earnings: Decimal
    total_deliveries: int
    today_distance_km: float
    rating: float


def month_before(moment: datetime) -> datetime:
    """Same day and time one calendar month earlier, clamped to month end."""
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


class DeliveryService(BaseService):
    """What delivery partners do with delivery assignments."""

    async def partner_profile(self, partner: User) -> DeliveryPartner:
        self.require_role(partner, Role.DELIVERY_PARTNER)
        return await self.db.delivery_partners.require(partner.id)

    async def _details(
        self,
        assignment: DeliveryAssignment,
        profile: DeliveryPartner | None = None,
    ) -> DeliveryDetails:
        order = await self.db.orders.require(assignment.order_id)
        store: Store = await self.db.stores.require(order.store_id)
        customer = await self.db.users.get(order.customer_id)

        distance_to_store = None
        if (
            profile is not None
            and None not in (profile.current_latitude, profile.current_longitude)
            and None not in (store.latitude, store.longitude)
        ):
            distance_to_store = calculate_distance(
                profile.current_latitude,
                profile.current_longitude,
                store.latitude,
                store.longitude,
            )

        return DeliveryDetails(
            assignment=assignment,
            order=order,
            store_name=store.name,
            store_address=store.address,
            customer_name=customer.full_name if customer else None,
            customer_phone=customer.phone if customer else None,
            distance_km=order.distance_km,
            distance_to_store_km=distance_to_store,
            estimated_earnings=partner_earnings(order.total_amount, self.settings),
        )

    async def pending_deliveries(
        self, partner: User, limit: int | None = None
    ) -> list[DeliveryDetails]:
        """Claimable deliveries, oldest first.

        Only unassigned pending assignments whose order has left the store
        counter are listed.
        """
        profile = await self.partner_profile(partner)
        limit = limit or self.settings.pending_deliveries_limit

        details = []
        for assignment in await self.db.delivery_assignments.where(
            "status", DeliveryStatus.PENDING
        ):
            if not assignment.is_open:
                continue
            order = await self.db.orders.get(assignment.order_id)
            if order is None or order.status != OrderStatus.DISPATCHED:
                continue
            details.append(await self._details(assignment, profile))
            if len(details) >= limit:
                break
        return details

    async def accept_delivery(self, partner: User, assignment_id: UUID) -> DeliveryAssignment:
        """Claim a pending delivery.

        The claim is a conditional write on ``status == pending`` and
        ``delivery_partner_id is None``, so among any number of partners
        racing for the same assignment exactly one wins.

        Raises:
            PartnerUnavailableError: Partner is offline or not verified
            OrderAlreadyTakenError: Another partner holds the assignment
            OrderNoLongerAvailableError: The assignment left ``pending``
        """
        profile = await self.partner_profile(partner)
        if not profile.can_accept:
            raise PartnerUnavailableError(
                "Go online and complete verification before accepting deliveries"
            )

        assignment = await self.db.delivery_assignments.require(assignment_id)
        order = await self.db.orders.require(assignment.order_id)

        if assignment.delivery_partner_id is not None:
            transitions.log_claim(
                str(assignment.id), str(partner.id), won=False, code=OrderAlreadyTakenError.code
            )
            raise OrderAlreadyTakenError()
        if assignment.status != DeliveryStatus.PENDING or order.status != OrderStatus.DISPATCHED:
            transitions.log_claim(
                str(assignment.id), str(partner.id), won=False,
                code=OrderNoLongerAvailableError.code,
            )
            raise OrderNoLongerAvailableError()

        try:
            claimed = await self.db.delivery_assignments.update(
                assignment.id,
                {
                    "delivery_partner_id": partner.id,
                    "status": DeliveryStatus.ACCEPTED,
                    "assigned_at": utcnow(),
                },
                expect={"status": DeliveryStatus.PENDING, "delivery_partner_id": None},
            )
        except ConditionFailed as exc:
            error = (
                OrderAlreadyTakenError()
                if exc.current.delivery_partner_id is not None
                else OrderNoLongerAvailableError()
            )
            transitions.log_claim(str(assignment.id), str(partner.id), won=False, code=error.code)
            raise error

        transitions.log_claim(str(assignment.id), str(partner.id), won=True)
        transitions.log_transition(
            str(assignment.id),
            DeliveryStatus.PENDING.value,
            DeliveryStatus.ACCEPTED.value,
            actor_id=str(partner.id),
            order_id=str(order.id),
        )

        store = await self.db.stores.require(order.store_id)
        await self.notify(
            order.customer_id,
            "Delivery Partner Assigned",
            f"{partner.full_name} will deliver your order from {store.name}",
            "delivery_accepted",
            order_id=order.id,
        )
        await self.notify(
            store.vendor_id,
            "Delivery Partner Assigned",
            f"{partner.full_name} is on the way to pick up the order",
            "delivery_accepted",
            order_id=order.id,
        )
        return claimed

    async def update_delivery_status(
        self,
        partner: User,
        assignment_id: UUID,
        new_status: DeliveryStatus,
    ) -> DeliveryAssignment:
        """Progress a delivery the partner holds."""
        assignment = await self.db.delivery_assignments.require(assignment_id)
        if assignment.delivery_partner_id != partner.id:
            raise PermissionDeniedError("This delivery is not assigned to you")

        if not DeliveryTransitions.can_transition(assignment.status, new_status):
            transitions.log_rejected(
                str(assignment.id), assignment.status.value, new_status.value,
                reason="invalid_transition", actor_id=str(partner.id),
            )
            raise InvalidTransitionError("delivery", assignment.status.value, new_status.value)

        order = await self.db.orders.require(assignment.order_id)
        if new_status != DeliveryStatus.CANCELLED and order.status != OrderStatus.DISPATCHED:
            transitions.log_rejected(
                str(assignment.id), assignment.status.value, new_status.value,
                reason="order_not_dispatched", actor_id=str(partner.id),
            )
            raise ConflictError(f"Order is {order.status.value}; the delivery cannot progress")

        changes: dict = {"status": new_status}
        now = utcnow()
        if new_status == DeliveryStatus.PICKED_UP:
            changes["picked_up_at"] = now
        elif new_status == DeliveryStatus.DELIVERED:
            changes["delivered_at"] = now
            if assignment.picked_up_at is None:
                changes["picked_up_at"] = now

        try:
            updated = await self.db.delivery_assignments.update(
                assignment.id,
                changes,
                expect={"status": assignment.status, "delivery_partner_id": partner.id},
            )
        except ConditionFailed as exc:
            raise InvalidTransitionError(
                "delivery", exc.current.status.value, new_status.value
            )

        transitions.log_transition(
            str(assignment.id), assignment.status.value, new_status.value,
            actor_id=str(partner.id), order_id=str(assignment.order_id),
        )

        order = await self.db.orders.require(assignment.order_id)
        store = await self.db.stores.require(order.store_id)

        if new_status == DeliveryStatus.CANCELLED:
            await self._release(order, store, partner)
        elif new_status == DeliveryStatus.DELIVERED:
            await self._complete(order, store)
        else:
            await self.notify(
                order.customer_id,
                "Delivery Update",
                f"Your order from {store.name} is {new_status.value.replace('_', ' ')}",
                "delivery_status",
                order_id=order.id,
                status=new_status.value,
            )
        return updated

    async def _release(self, order: Order, store: Store, partner: User) -> None:
        """Put an order dropped by its partner back up for claiming."""
        await self.notify(
            store.vendor_id,
            "Delivery Partner Cancelled",
            f"{partner.full_name} dropped the delivery; finding another partner",
            "delivery_cancelled",
            order_id=order.id,
        )
        if order.status == OrderStatus.DISPATCHED:
            await self.announce_delivery(order, store)

    async def _complete(self, order: Order, store: Store) -> None:
        """Close the order behind a delivered assignment and record payment.

        Raises ``ConflictError`` if the order is no longer dispatched.
        """
        try:
            await self.db.orders.update(
                order.id,
                {"status": OrderStatus.DELIVERED},
                expect={"status": OrderStatus.DISPATCHED},
            )
        except ConditionFailed as exc:
            self.logger.warning(
                "order_not_dispatched_on_delivery",
                order_id=str(order.id),
                status=exc.current.status.value,
            )
            raise ConflictError(
                f"Order is {exc.current.status.value} and cannot be marked delivered"
            )

        TransitionLogger("order").log_transition(
            str(order.id), OrderStatus.DISPATCHED.value, OrderStatus.DELIVERED.value
        )

        await self.db.transactions.insert(
            Transaction(
                order_id=order.id,
                customer_id=order.customer_id,
                amount=order.total_amount,
                payment_method="cod",
                status=TransactionStatus.COMPLETED,
            )
        )

        await self.notify(
            order.customer_id,
            "Order Delivered",
            f"Your order from {store.name} has been delivered. Enjoy your meal!",
            "order_delivered",
            order_id=order.id,
        )

    async def active_delivery(self, partner: User) -> DeliveryDetails | None:
        """The delivery the partner is currently working on, if any."""
        profile = await self.partner_profile(partner)
        assignments = await self.db.delivery_assignments.where(
            "delivery_partner_id", partner.id
        )
        active = [a for a in assignments if a.status in DeliveryTransitions.ACTIVE_STATES]
        if not active:
            return None
        return await self._details(active[-1], profile)

    async def delivery_history(self, partner: User, limit: int = 50) -> list[DeliveryDetails]:
        """Finished deliveries, newest first."""
        profile = await self.partner_profile(partner)
        assignments = await self.db.delivery_assignments.where(
            "delivery_partner_id", partner.id
        )
        finished = [a for a in reversed(assignments) if DeliveryTransitions.is_terminal(a.status)]
        return [await self._details(a, profile) for a in finished[:limit]]

    async def delivery_stats(self, partner: User) -> DeliveryStats:
        profile = await self.partner_profile(partner)

        delivered: list[tuple[datetime, Decimal]] = []
        for assignment in await self.db.delivery_assignments.where(
            "delivery_partner_id", partner.id
        ):
            if assignment.status != DeliveryStatus.DELIVERED:
                continue
            order = await self.db.orders.get(assignment.order_id)
            if order is None:
                continue
            delivered.append(
                (
                    assignment.delivered_at or assignment.updated_at,
                    partner_earnings(order.total_amount, self.settings),
                )
            )

        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        windows = {
            "today": today,
            "week": today - timedelta(days=7),
            "month": month_before(today),
        }
        counts = {}
        earnings = {}
        for name, since in windows.items():
            in_window = [amount for at, amount in delivered if at >= since]
            counts[name] = len(in_window)
            earnings[name] = sum(in_window, Decimal("0"))

        return DeliveryStats(
            today_deliveries=counts["today"],
            today_earnings=earnings["today"],
            week_deliveries=counts["week"],
            week_earnings=earnings["week"],
            month_deliveries=counts["month"],
            month_earnings=earnings["month"],
            total_deliveries=len(delivered),
            today_distance_km=round(counts["today"] * self.settings.avg_km_per_delivery, 1),
            rating=profile.rating,
        )

    async def set_availability(self, partner: User, is_available: bool) -> DeliveryPartner:
        await self.partner_profile(partner)
        updated = await self.db.delivery_partners.update(
            partner.id, {"is_available": is_available}
        )
        self.logger.info(
            "partner_availability_changed", partner_id=str(partner.id), available=is_available
        )
        return updated

    async def update_location(
        self, partner: User, latitude: float, longitude: float
    ) -> DeliveryPartner:
        await self.partner_profile(partner)
        return await self.db.delivery_partners.update(
            partner.id,
            {"current_latitude": latitude, "current_longitude": longitude},
        )
