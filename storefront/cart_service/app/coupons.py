"""Coupon eligibility rules and discount computation.

Everything here is pure: the evaluation time is passed in and no function
raises for bad coupon data. An ineligible or malformed coupon is worth zero.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

from storefront.common.money import ZERO, clamp_non_negative, round_money, to_decimal

from .schemas import Coupon, LineItem

_HUNDRED = Decimal("100")

INELIGIBILITY_MESSAGES: dict[str, str] = {
    "inactive": "This coupon is no longer active.",
    "min_order_amount": "Add more items to reach the minimum order amount for this coupon.",
    "min_order_count": "Add more items to reach the minimum item count for this coupon.",
    "not_started": "This coupon is not valid yet.",
    "expired": "This coupon has expired.",
    "per_user_limit": "You have already used this coupon the maximum number of times.",
    "max_uses": "This coupon has reached its usage limit.",
    "zero_discount": "This coupon does not reduce your order total.",
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def check_eligibility(
    coupon: Coupon,
    subtotal: Decimal,
    items: Iterable[LineItem],
    now: datetime,
) -> str | None:
    """Return the first failed predicate name, or None when the coupon applies."""

    if not coupon.is_active:
        return "inactive"
    if subtotal < coupon.min_order_amount:
        return "min_order_amount"
    if sum(item.quantity for item in items) < coupon.min_order_count:
        return "min_order_count"

    moment = _as_utc(now)
    if coupon.valid_from is not None and moment < coupon.valid_from:
        return "not_started"
    if coupon.valid_till is not None and moment > coupon.valid_till:
        return "expired"

    per_user_limit = coupon.usage_limit.per_user_limit
    if per_user_limit is not None and coupon.used_count >= per_user_limit:
        return "per_user_limit"
    if coupon.max_uses is not None and coupon.used_count >= coupon.max_uses:
        return "max_uses"
    return None


def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Discount for an eligible coupon, bounded to ``[0, subtotal]``."""

    value = clamp_non_negative(coupon.discount_value)
    if coupon.discount_type == "percentage":
        raw = subtotal * value / _HUNDRED
        cap = coupon.max_discount_amount
        if cap is not None and raw > cap:
            raw = cap
    else:
        raw = min(value, subtotal)
    return round_money(min(clamp_non_negative(raw), subtotal))


def evaluate(
    coupon: Coupon | None,
    subtotal: Any,
    items: Iterable[LineItem],
    now: datetime,
) -> Decimal:
    """Return the discount ``coupon`` is worth for this cart at ``now``."""

    if coupon is None:
        return ZERO
    amount = clamp_non_negative(to_decimal(subtotal))
    line_items = list(items)
    if check_eligibility(coupon, amount, line_items, now) is not None:
        return ZERO
    return compute_discount(coupon, amount)


def describe_ineligibility(reason: str | None) -> str:
    if reason is None:
        return "Coupon applied successfully!"
    return INELIGIBILITY_MESSAGES.get(reason, "This coupon is not applicable to your cart.")
