"""Notifications, reviews, refunds and payment transactions."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import Field

from tiffin.models.base import Record


class Notification(Record):
    """In-app notification for one user."""

    user_id: UUID
    title: str
    message: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False


class Review(Record):
    """Customer rating of a delivered order."""

    customer_id: UUID
    store_id: UUID
    order_id: UUID
    rating: int = Field(ge=1, le=5)
    comment: str | None = None


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Transaction(Record):
    """Payment collected for an order."""

    order_id: UUID
    customer_id: UUID
    amount: Decimal = Field(ge=0)
    payment_method: str = "cod"
    status: TransactionStatus = TransactionStatus.PENDING


class RefundStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class Refund(Record):
    """Refund request raised by a customer and decided by an admin."""

    order_id: UUID
    customer_id: UUID
    transaction_id: UUID | None = None
    amount: Decimal = Field(gt=0)
    reason: str | None = None
    status: RefundStatus = RefundStatus.PENDING
    processed_by: UUID | None = None
    processed_at: datetime | None = None
