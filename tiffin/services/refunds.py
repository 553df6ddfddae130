"""Customer refund requests and their admin review."""

from decimal import Decimal
from uuid import UUID

from tiffin.errors import ConflictError, PermissionDeniedError, ValidationFailedError
from tiffin.models import (
    OrderStatus,
    Refund,
    RefundStatus,
    Role,
    TransactionStatus,
    User,
    utcnow,
)
from tiffin.services.base import BaseService
from tiffin.state.repository import ConditionFailed


class RefundService(BaseService):
    """Refunds for delivered or cancelled orders."""

    # order id -> customer id while a refund for the order awaits a decision
    OPEN_REFUNDS = "refunds:open_by_order"

    async def request_refund(
        self,
        customer: User,
        order_id: UUID,
        amount: Decimal,
        reason: str | None = None,
    ) -> Refund:
        self.require_role(customer, Role.CUSTOMER)

        order = await self.db.orders.require(order_id)
        if order.customer_id != customer.id:
            raise PermissionDeniedError("You can only request refunds for your own orders")
        if order.status not in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
            raise ValidationFailedError(
                "Refunds can only be requested for delivered or cancelled orders"
            )
        if amount <= 0 or amount > order.total_amount:
            raise ValidationFailedError(
                f"Refund amount must be between ₹1 and ₹{order.total_amount}"
            )

        if not await self.db.state.hsetnx(self.OPEN_REFUNDS, str(order.id), str(customer.id)):
            raise ConflictError("A refund for this order is already in progress")

        transaction = await self.db.transactions.first_where("order_id", order.id)
        refund = await self.db.refunds.insert(
            Refund(
                order_id=order.id,
                customer_id=customer.id,
                transaction_id=transaction.id if transaction else None,
                amount=amount,
                reason=reason,
            )
        )
        self.logger.info(
            "refund_requested", refund_id=str(refund.id), order_id=str(order.id), amount=str(amount)
        )
        return refund

    async def process_refund(
        self,
        admin: User,
        refund_id: UUID,
        approve: bool,
        reason: str | None = None,
    ) -> Refund:
        """Approve or reject a pending refund.

        An approved refund marks the order's payment refunded and ends up
        ``processed``.
        """
        self.require_role(admin, Role.ADMIN)

        refund = await self.db.refunds.require(refund_id)
        decided = RefundStatus.PROCESSED if approve else RefundStatus.REJECTED
        changes = {
            "status": decided,
            "processed_by": admin.id,
            "processed_at": utcnow(),
        }
        if reason:
            changes["reason"] = reason

        try:
            refund = await self.db.refunds.update(
                refund.id, changes, expect={"status": RefundStatus.PENDING}
            )
        except ConditionFailed as exc:
            raise ConflictError(
                f"Refund has already been {exc.current.status.value}"
            )
        await self.db.state.hdel(self.OPEN_REFUNDS, str(refund.order_id))

        if approve and refund.transaction_id is not None:
            await self.db.transactions.update(
                refund.transaction_id, {"status": TransactionStatus.REFUNDED}
            )

        await self.notify(
            refund.customer_id,
            "Refund Approved" if approve else "Refund Rejected",
            (
                f"Your refund of ₹{refund.amount} has been processed"
                if approve
                else f"Your refund request was rejected{': ' + reason if reason else ''}"
            ),
            "refund",
            refund_id=refund.id,
            order_id=refund.order_id,
        )

        self.logger.info(
            "refund_processed",
            refund_id=str(refund.id),
            status=refund.status.value,
            admin_id=str(admin.id),
        )
        return refund

    async def list_refunds(
        self, user: User, status: RefundStatus | None = None
    ) -> list[Refund]:
        """All refunds for admins, own refunds for customers; newest first."""
        if user.role == Role.ADMIN:
            refunds = (
                await self.db.refunds.where("status", status)
                if status
                else await self.db.refunds.all()
            )
        else:
            self.require_role(user, Role.CUSTOMER)
            refunds = [
                refund
                for order in await self.db.orders.where("customer_id", user.id)
                for refund in await self.db.refunds.where("order_id", order.id)
            ]
            if status:
                refunds = [refund for refund in refunds if refund.status == status]
        return sorted(refunds, key=lambda refund: refund.created_at, reverse=True)
