"""Distance, ETA, fee and discount arithmetic."""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel

from tiffin.config import Settings, get_settings
from tiffin.errors import ValidationFailedError
from tiffin.models import DiscountType, Offer

EARTH_RADIUS_KM = 6371


def _rupees(amount: Decimal) -> Decimal:
    """Round to whole rupees, halves away from zero."""
    return amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km (haversine), rounded to 2 decimals."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_KM * c, 2)


def format_distance(km: float) -> str:
    """Human readable distance: metres below 1 km."""
    if km < 1:
        return f"{round(km * 1000)} m"
    return f"{km:.1f} km"


def is_fast_delivery(km: float, settings: Settings | None = None) -> bool:
    settings = settings or get_settings()
    return km <= settings.fast_delivery_distance_km


def estimate_delivery_time(km: float, settings: Settings | None = None) -> int:
    """Estimated minutes from order to door."""
    settings = settings or get_settings()
    return round(settings.base_delivery_minutes + km * settings.minutes_per_km)


def delivery_fee(distance_km: float | None, settings: Settings | None = None) -> Decimal:
    """Free below the free-delivery radius, per-km beyond it.

    A flat fallback fee applies when the distance could not be worked out.
    """
    settings = settings or get_settings()
    if distance_km is None:
        return settings.default_delivery_fee
    if distance_km < settings.free_delivery_distance_km:
        return Decimal("0")
    return _rupees(Decimal(str(distance_km)) * settings.delivery_fee_per_km)


def offer_discount(offer: Offer, subtotal: Decimal, now: datetime) -> Decimal:
    """Discount ``offer`` grants on ``subtotal``.

    Raises:
        ValidationFailedError: If the offer cannot be applied.
    """
    if not offer.is_active:
        raise ValidationFailedError("This promo code is not active")
    if now < offer.valid_from or now > offer.valid_until:
        raise ValidationFailedError("This promo code has expired")
    if subtotal < offer.min_order_amount:
        raise ValidationFailedError(
            f"Minimum order of ₹{offer.min_order_amount:.0f} required"
        )
    if offer.usage_limit is not None and offer.usage_count >= offer.usage_limit:
        raise ValidationFailedError("This promo code has reached its usage limit")

    if offer.discount_type == DiscountType.PERCENTAGE:
        discount = _rupees(subtotal * offer.discount_value / Decimal("100"))
        if offer.max_discount is not None:
            discount = min(discount, offer.max_discount)
    else:
        discount = offer.discount_value

    return min(discount, subtotal)


class PriceQuote(BaseModel):
    """Checkout bill breakdown."""

    subtotal: Decimal
    delivery_fee: Decimal
    platform_fee: Decimal
    packaging_charge: Decimal
    gst: Decimal
    tip: Decimal
    discount: Decimal
    total: Decimal


def quote(
    subtotal: Decimal,
    distance_km: float | None,
    tip: Decimal = Decimal("0"),
    discount: Decimal = Decimal("0"),
    settings: Settings | None = None,
) -> PriceQuote:
    """Price an order the way the checkout bill shows it."""
    settings = settings or get_settings()

    fee = delivery_fee(distance_km, settings)
    gst = _rupees(subtotal * settings.gst_rate)
    total = (
        subtotal
        + fee
        + settings.platform_fee
        + settings.packaging_charge
        + gst
        + tip
        - discount
    )

    return PriceQuote(
        subtotal=subtotal,
        delivery_fee=fee,
        platform_fee=settings.platform_fee,
        packaging_charge=settings.packaging_charge,
        gst=gst,
        tip=tip,
        discount=discount,
        total=max(total, Decimal("0")),
    )


def partner_earnings(order_total: Decimal, settings: Settings | None = None) -> Decimal:
    """Partner payout for one delivered order."""
    settings = settings or get_settings()
    return order_total * settings.partner_commission_rate + settings.partner_base_payout
