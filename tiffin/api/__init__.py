"""HTTP and WebSocket API."""

from fastapi import APIRouter

from tiffin.api import admin, auth, customer, delivery, vendor

router = APIRouter()
router.include_router(auth.router)
router.include_router(customer.router)
router.include_router(vendor.router)
router.include_router(delivery.router)
router.include_router(admin.router)

__all__ = ["router"]
