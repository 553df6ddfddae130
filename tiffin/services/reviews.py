"""Store reviews and in-app notifications."""

from uuid import UUID

from tiffin.errors import ConflictError, PermissionDeniedError, ValidationFailedError
from tiffin.models import Notification, OrderStatus, Review, Role, User
from tiffin.services.base import BaseService
from tiffin.state.repository import ConditionFailed


class ReviewService(BaseService):
    """Customer reviews of delivered orders."""

    async def submit_review(
        self,
        customer: User,
        order_id: UUID,
        rating: int,
        comment: str | None = None,
    ) -> Review:
        self.require_role(customer, Role.CUSTOMER)
        if not 1 <= rating <= 5:
            raise ValidationFailedError("Rating must be between 1 and 5")

        order = await self.db.orders.require(order_id)
        if order.customer_id != customer.id:
            raise PermissionDeniedError("You can only review your own orders")
        if order.status != OrderStatus.DELIVERED:
            raise ValidationFailedError("Only delivered orders can be reviewed")

        # One review per order.
        if not await self.db.state.hsetnx("reviews:by_order", str(order.id), str(customer.id)):
            raise ConflictError("This order has already been reviewed")

        review = await self.db.reviews.insert(
            Review(
                customer_id=customer.id,
                store_id=order.store_id,
                order_id=order.id,
                rating=rating,
                comment=comment,
            )
        )

        store = await self.db.stores.require(order.store_id)
        while True:
            count = store.review_count + 1
            average = round((store.average_rating * store.review_count + rating) / count, 2)
            try:
                await self.db.stores.update(
                    store.id,
                    {"average_rating": average, "review_count": count},
                    expect={"review_count": store.review_count},
                )
                break
            except ConditionFailed as exc:
                store = exc.current

        self.logger.info(
            "review_submitted", order_id=str(order.id), store_id=str(store.id), rating=rating
        )
        return review

    async def store_reviews(self, store_id: UUID, limit: int = 50) -> list[Review]:
        reviews = await self.db.reviews.where("store_id", store_id)
        return list(reversed(reviews))[:limit]


class NotificationService(BaseService):
    """A user's notification inbox."""

    async def list_notifications(
        self, user: User, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        notifications = await self.db.notifications.where("user_id", user.id)
        if unread_only:
            notifications = [n for n in notifications if not n.is_read]
        return list(reversed(notifications))[:limit]

    async def mark_read(self, user: User, notification_id: UUID) -> Notification:
        notification = await self.db.notifications.require(notification_id)
        if notification.user_id != user.id:
            raise PermissionDeniedError("Not your notification")
        if notification.is_read:
            return notification
        return await self.db.notifications.update(notification.id, {"is_read": True})

    async def mark_all_read(self, user: User) -> int:
        """Mark every unread notification read; returns how many changed."""
        unread = await self.list_notifications(user, unread_only=True, limit=10_000)
        for notification in unread:
            await self.db.notifications.update(notification.id, {"is_read": True})
        return len(unread)
