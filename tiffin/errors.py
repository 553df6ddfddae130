"""Domain errors raised by the marketplace services."""

from typing import Any

from fastapi import status


class MarketplaceError(Exception):
    """Base error carrying an HTTP status and a stable error code."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "BAD_REQUEST"

    def __init__(self, detail: str, errors: Any | None = None):
        super().__init__(detail)
        self.detail = detail
        self.errors = errors

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.code, "detail": self.detail}
        if self.errors:
            content["errors"] = self.errors
        return content


class ValidationFailedError(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_FAILED"


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHORIZED"


class PermissionDeniedError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"


class PartnerUnavailableError(PermissionDeniedError):
    code = "PARTNER_UNAVAILABLE"


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, from_status: str, to_status: str):
        super().__init__(f"Cannot move {entity} from {from_status} to {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class OrderAlreadyTakenError(ConflictError):
    """Another partner claimed the delivery first."""

    code = "ORDER_ALREADY_TAKEN"

    def __init__(self, detail: str = "Order was accepted by another partner"):
        super().__init__(detail)


class OrderNoLongerAvailableError(ConflictError):
    """The delivery left the pending state before it could be claimed."""

    code = "ORDER_NO_LONGER_AVAILABLE"

    def __init__(self, detail: str = "This order is no longer available"):
        super().__init__(detail)
