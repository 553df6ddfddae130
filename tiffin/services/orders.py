"""Order placement, the vendor's order board and customer tracking."""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from tiffin.errors import (
    ConflictError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationFailedError,
)
from tiffin.models import (
    DeliveryAssignment,
    DeliveryPartner,
    DeliveryStatus,
    Location,
    Offer,
    Order,
    OrderItem,
    OrderStatus,
    Role,
    Store,
    User,
    utcnow,
)
from tiffin.services.base import BaseService
from tiffin.services.pricing import (
    calculate_distance,
    estimate_delivery_time,
    offer_discount,
    quote,
)
from tiffin.state.repository import ConditionFailed
from tiffin.state.workflow import (
    OrderTransitions,
    VendorOrderView,
    can_cancel_order,
    vendor_order_view,
)
from tiffin.utils.logging import TransitionLogger

transitions = TransitionLogger("order")


# Request/Response Models
class PlaceOrderItem(BaseModel):
    menu_item_id: UUID
    quantity: int = Field(ge=1, le=50)
    notes: str | None = Field(default=None, max_length=200)


class PlaceOrderRequest(BaseModel):
    store_id: UUID
    items: list[PlaceOrderItem] = Field(min_length=1)
    delivery_address: str = Field(min_length=1, max_length=500)
    delivery_latitude: float | None = Field(default=None, ge=-90, le=90)
    delivery_longitude: float | None = Field(default=None, ge=-180, le=180)
    notes: str | None = Field(default=None, max_length=500)
    tip: Decimal = Field(default=Decimal("0"), ge=0)
    offer_code: str | None = None


class VendorOrderDetails(BaseModel):
    """An order as listed on the vendor's board."""

    order: Order
    assignment: DeliveryAssignment | None = None
    view: VendorOrderView
    can_cancel: bool
    next_status: OrderStatus | None = None


class VendorStats(BaseModel):
    today_orders: int
    pending_orders: int
    today_revenue: Decimal
    total_menu_items: int
    total_stores: int


class OrderTracking(BaseModel):
    """Live view of an order for the customer."""

    order: Order
    assignment: DeliveryAssignment | None = None
    partner_location: Location | None = None
    distance_to_customer_km: float | None = None
    eta_minutes: int | None = None


class OrderService(BaseService):
    """Customer and vendor side of the order lifecycle."""

    async def place_order(self, customer: User, request: PlaceOrderRequest) -> Order:
        """Price and create an order with its open delivery assignment.

        Args:
            customer: The ordering customer
            request: Store, basket and delivery details

        Returns:
            The created order in ``pending`` status
        """
        self.require_role(customer, Role.CUSTOMER)

        store = await self.db.stores.require(request.store_id)
        if not store.is_active:
            raise ValidationFailedError("This store is not accepting orders")
        vendor = await self.db.vendors.get(store.vendor_id)
        if vendor is None or not vendor.is_verified:
            raise ValidationFailedError("This store is not accepting orders")

        items = await self._order_items(store, request.items)
        subtotal = sum((item.subtotal for item in items), Decimal("0"))

        distance = None
        if None not in (
            store.latitude,
            store.longitude,
            request.delivery_latitude,
            request.delivery_longitude,
        ):
            distance = calculate_distance(
                store.latitude,
                store.longitude,
                request.delivery_latitude,
                request.delivery_longitude,
            )
            if distance > self.settings.max_delivery_distance_km:
                raise ValidationFailedError(
                    f"Delivery address is {distance} km away; this store delivers "
                    f"within {self.settings.max_delivery_distance_km:g} km"
                )

        discount = Decimal("0")
        offer_code = None
        if request.offer_code:
            offer, discount = await self._redeem_offer(store, request.offer_code, subtotal)
            offer_code = offer.code

        bill = quote(subtotal, distance, request.tip, discount, self.settings)

        order = Order(
            customer_id=customer.id,
            store_id=store.id,
            items=items,
            subtotal=bill.subtotal,
            delivery_fee=bill.delivery_fee,
            platform_fee=bill.platform_fee,
            packaging_charge=bill.packaging_charge,
            gst=bill.gst,
            tip=bill.tip,
            discount_amount=bill.discount,
            total_amount=bill.total,
            offer_code=offer_code,
            delivery_address=request.delivery_address,
            delivery_latitude=request.delivery_latitude,
            delivery_longitude=request.delivery_longitude,
            distance_km=distance,
            estimated_delivery_minutes=(
                estimate_delivery_time(distance, self.settings) if distance is not None else None
            ),
            notes=request.notes,
        )
        await self.db.orders.insert(order)
        await self.db.delivery_assignments.insert(DeliveryAssignment(order_id=order.id))

        await self.notify(
            store.vendor_id,
            "New Order",
            f"New order received for {store.name}: ₹{order.total_amount}",
            "new_order",
            order_id=order.id,
        )

        self.logger.info(
            "order_placed",
            order_id=str(order.id),
            customer_id=str(customer.id),
            store_id=str(store.id),
            total=str(order.total_amount),
        )
        return order

    async def _order_items(self, store: Store, lines: list[PlaceOrderItem]) -> list[OrderItem]:
        items = []
        for line in lines:
            menu_item = await self.db.menu_items.get(line.menu_item_id)
            if menu_item is None or menu_item.store_id != store.id:
                raise ValidationFailedError(
                    f"Menu item {line.menu_item_id} is not sold by {store.name}"
                )
            if not menu_item.is_available:
                raise ValidationFailedError(f"{menu_item.name} is currently unavailable")
            items.append(
                OrderItem(
                    menu_item_id=menu_item.id,
                    name=menu_item.name,
                    quantity=line.quantity,
                    price_at_order=menu_item.price,
                    notes=line.notes,
                )
            )
        return items

    async def _redeem_offer(
        self, store: Store, code: str, subtotal: Decimal
    ) -> tuple[Offer, Decimal]:
        """Validate an offer, count one use of it and return its discount.

        The usage counter only moves if it still holds the value the offer was
        validated against.
        """
        code = code.strip().upper()
        offer = next(
            (o for o in await self.db.offers.where("store_id", store.id) if o.code == code),
            None,
        )
        if offer is None:
            raise ValidationFailedError("Invalid promo code")

        while True:
            discount = offer_discount(offer, subtotal, utcnow())
            try:
                redeemed = await self.db.offers.update(
                    offer.id,
                    {"usage_count": offer.usage_count + 1},
                    expect={"usage_count": offer.usage_count},
                )
                return redeemed, discount
            except ConditionFailed as exc:
                offer = exc.current

    async def _managed_order(self, actor: User, order_id: UUID) -> tuple[Order, Store]:
        order = await self.db.orders.require(order_id)
        store = await self.db.stores.require(order.store_id)
        self.ensure_manages_store(actor, store)
        return order, store

    async def update_order_status(
        self, actor: User, order_id: UUID, new_status: OrderStatus
    ) -> Order:
        """Move an order one step along its lifecycle on the vendor's behalf.

        ``delivered`` is reached through the delivery partner, and
        cancellation goes through ``cancel_order``.
        """
        if new_status == OrderStatus.CANCELLED:
            return await self.cancel_order(actor, order_id)

        order, store = await self._managed_order(actor, order_id)

        if new_status == OrderStatus.DELIVERED:
            transitions.log_rejected(
                str(order.id), order.status.value, new_status.value,
                reason="delivered_by_partner_only", actor_id=str(actor.id),
            )
            raise PermissionDeniedError("Orders are marked delivered by the delivery partner")

        if not OrderTransitions.can_transition(order.status, new_status):
            transitions.log_rejected(
                str(order.id), order.status.value, new_status.value,
                reason="invalid_transition", actor_id=str(actor.id),
            )
            raise InvalidTransitionError("order", order.status.value, new_status.value)

        try:
            updated = await self.db.orders.update(
                order.id, {"status": new_status}, expect={"status": order.status}
            )
        except ConditionFailed as exc:
            raise InvalidTransitionError("order", exc.current.status.value, new_status.value)

        transitions.log_transition(
            str(order.id), order.status.value, new_status.value, actor_id=str(actor.id)
        )

        if new_status == OrderStatus.DISPATCHED:
            await self.announce_delivery(updated, store)

        await self.notify(
            order.customer_id,
            "Order Update",
            f"Your order from {store.name} is now {new_status.value}",
            "order_status",
            order_id=order.id,
            status=new_status.value,
        )
        return updated

    async def advance_order(self, actor: User, order_id: UUID) -> Order:
        """Take the vendor's next step for an order."""
        order = await self.db.orders.require(order_id)
        next_status = OrderTransitions.next_status(order.status)
        if next_status is None:
            raise ConflictError(f"Order in status {order.status.value} cannot be advanced")
        return await self.update_order_status(actor, order_id, next_status)

    async def cancel_order(
        self, actor: User, order_id: UUID, reason: str | None = None
    ) -> Order:
        """Cancel an order and its delivery while the food is still at the store.

        The order write is conditional on the status read. If the order moves
        meanwhile (for instance the vendor dispatches it and a new assignment
        opens), the check and the assignment cancellation run again against
        the fresh state.
        """
        order = await self.db.orders.require(order_id)
        store = await self.db.stores.require(order.store_id)

        if actor.role == Role.CUSTOMER:
            if order.customer_id != actor.id:
                raise PermissionDeniedError("Not authorized to cancel this order")
        else:
            self.ensure_manages_store(actor, store)

        partner_ids = set()
        while True:
            assignment = await self.current_assignment(order.id)
            delivery_status = assignment.status if assignment else None
            if not can_cancel_order(order.status, delivery_status):
                transitions.log_rejected(
                    str(order.id), order.status.value, OrderStatus.CANCELLED.value,
                    reason="not_cancellable", actor_id=str(actor.id),
                )
                raise ConflictError("This order can no longer be cancelled")

            if assignment is not None:
                assignment = await self._cancel_assignment(assignment)
                if assignment.delivery_partner_id is not None:
                    partner_ids.add(assignment.delivery_partner_id)

            try:
                cancelled = await self.db.orders.update(
                    order.id,
                    {"status": OrderStatus.CANCELLED, "cancellation_reason": reason},
                    expect={"status": order.status},
                )
                break
            except ConditionFailed as exc:
                self.logger.info(
                    "order_changed_while_cancelling",
                    order_id=str(order.id),
                    status=exc.current.status.value,
                )
                order = exc.current

        partner_ids |= await self._close_assignments(order.id)

        transitions.log_transition(
            str(order.id), order.status.value, OrderStatus.CANCELLED.value,
            actor_id=str(actor.id), reason=reason,
        )

        recipients = {order.customer_id, store.vendor_id} | partner_ids
        recipients.discard(actor.id)
        for user_id in recipients:
            await self.notify(
                user_id,
                "Order Cancelled",
                f"Order from {store.name} was cancelled"
                + (f": {reason}" if reason else ""),
                "order_cancelled",
                order_id=order.id,
            )
        return cancelled

    async def _close_assignments(self, order_id: UUID) -> set[UUID]:
        """Cancel assignments still open on a cancelled order.

        Returns the partners that held one.
        """
        partner_ids = set()
        for assignment in await self.db.delivery_assignments.where("order_id", order_id):
            if assignment.status not in (DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED):
                continue
            try:
                assignment = await self._cancel_assignment(assignment)
            except ConflictError:
                self.logger.warning(
                    "assignment_progressed_on_cancelled_order",
                    order_id=str(order_id),
                    assignment_id=str(assignment.id),
                )
                continue
            if assignment.delivery_partner_id is not None:
                partner_ids.add(assignment.delivery_partner_id)
        return partner_ids

    async def _cancel_assignment(self, assignment: DeliveryAssignment) -> DeliveryAssignment:
        """Cancel an assignment that has not been picked up.

        Raises ``ConflictError`` if a partner picks the food up first.
        """
        while assignment.status in (DeliveryStatus.PENDING, DeliveryStatus.ACCEPTED):
            try:
                return await self.db.delivery_assignments.update(
                    assignment.id,
                    {"status": DeliveryStatus.CANCELLED},
                    expect={"status": assignment.status},
                )
            except ConditionFailed as exc:
                assignment = exc.current

        if assignment.status != DeliveryStatus.CANCELLED:
            raise ConflictError("The order has already been picked up")
        return assignment

    async def order_details(self, actor: User, order_id: UUID) -> Order:
        """An order visible to its customer, its store's vendor, its partner or an admin."""
        order = await self.db.orders.require(order_id)
        if actor.role == Role.ADMIN or order.customer_id == actor.id:
            return order
        if actor.role == Role.VENDOR:
            store = await self.db.stores.require(order.store_id)
            if store.vendor_id == actor.id:
                return order
        if actor.role == Role.DELIVERY_PARTNER:
            assignment = await self.current_assignment(order.id)
            if assignment and assignment.delivery_partner_id == actor.id:
                return order
        raise PermissionDeniedError("Not authorized to view this order")

    async def _vendor_orders(self, vendor: User) -> list[Order]:
        orders: list[Order] = []
        for store in await self.db.stores.where("vendor_id", vendor.id):
            orders.extend(await self.db.orders.where("store_id", store.id))
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    async def vendor_orders(
        self,
        vendor: User,
        limit: int = 50,
        view: VendorOrderView | None = None,
    ) -> list[VendorOrderDetails]:
        """Vendor's orders newest first, each with its delivery assignment."""
        self.require_role(vendor, Role.VENDOR)

        details = []
        for order in await self._vendor_orders(vendor):
            assignment = await self.current_assignment(order.id)
            delivery_status = assignment.status if assignment else None
            bucket = vendor_order_view(order.status, delivery_status)
            if view is not None and bucket != view:
                continue
            details.append(
                VendorOrderDetails(
                    order=order,
                    assignment=assignment,
                    view=bucket,
                    can_cancel=can_cancel_order(order.status, delivery_status),
                    next_status=OrderTransitions.next_status(order.status),
                )
            )
            if len(details) >= limit:
                break
        return details

    async def vendor_stats(self, vendor: User) -> VendorStats:
        self.require_role(vendor, Role.VENDOR)

        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        orders = await self._vendor_orders(vendor)
        today_orders = [o for o in orders if o.created_at >= today]
        stores = await self.db.stores.where("vendor_id", vendor.id)

        menu_items = 0
        for store in stores:
            menu_items += len(await self.db.menu_items.where("store_id", store.id))

        return VendorStats(
            today_orders=len(today_orders),
            pending_orders=len(
                [
                    o
                    for o in orders
                    if o.status
                    in (OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PREPARING)
                ]
            ),
            today_revenue=sum(
                (o.total_amount for o in today_orders if o.status == OrderStatus.DELIVERED),
                Decimal("0"),
            ),
            total_menu_items=menu_items,
            total_stores=len(stores),
        )

    async def customer_orders(self, customer: User, limit: int = 50) -> list[Order]:
        orders = await self.db.orders.where("customer_id", customer.id)
        return list(reversed(orders))[:limit]

    async def track_order(self, customer: User, order_id: UUID) -> OrderTracking:
        """Where the customer's order is and how long it should take."""
        order = await self.db.orders.require(order_id)
        if order.customer_id != customer.id and customer.role != Role.ADMIN:
            raise PermissionDeniedError("Not authorized to track this order")

        assignment = await self.current_assignment(order.id)
        tracking = OrderTracking(order=order, assignment=assignment)

        partner: DeliveryPartner | None = None
        if (
            assignment is not None
            and assignment.delivery_partner_id is not None
            and assignment.status != DeliveryStatus.CANCELLED
        ):
            partner = await self.db.delivery_partners.get(assignment.delivery_partner_id)

        if (
            partner is not None
            and partner.current_latitude is not None
            and partner.current_longitude is not None
        ):
            tracking.partner_location = Location(
                lat=partner.current_latitude, lng=partner.current_longitude
            )
            if order.delivery_latitude is not None and order.delivery_longitude is not None:
                remaining = calculate_distance(
                    partner.current_latitude,
                    partner.current_longitude,
                    order.delivery_latitude,
                    order.delivery_longitude,
                )
                tracking.distance_to_customer_km = remaining
                tracking.eta_minutes = round(remaining * self.settings.minutes_per_km)
        elif order.estimated_delivery_minutes is not None and not OrderTransitions.is_terminal(
            order.status
        ):
            expected = order.created_at + timedelta(minutes=order.estimated_delivery_minutes)
            tracking.eta_minutes = max(0, round((expected - utcnow()).total_seconds() / 60))

        return tracking
