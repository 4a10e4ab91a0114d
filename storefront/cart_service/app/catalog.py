"""Coupon catalog lookup and the document-to-Coupon adapter."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Protocol

from pydantic import ValidationError

from storefront.common.money import ZERO, clamp_non_negative, to_decimal

from .schemas import Coupon

logger = logging.getLogger(__name__)


class CouponCatalog(Protocol):
    async def get_by_code(self, code: str) -> Coupon | None: ...


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _present(*values: Any) -> Any:
    return next((value for value in values if value is not None), None)


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    amount = to_decimal(value, default=Decimal("-1"))
    if amount < 0:
        return None
    return int(amount)


def _coerce_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if hasattr(value, "to_datetime"):
        return value.to_datetime()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _coerce_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def coupon_from_document(raw: Mapping[str, Any]) -> Coupon | None:
    """Normalize a backend coupon document into a :class:`Coupon`.

    Backend documents spell the same field several ways (``discountType`` or
    ``type``, ``validTill`` or ``validUntil``, usage counters nested under
    ``usageLimit``). Numeric fields are coerced leniently; a missing or
    unparseable discount value becomes zero. Returns None only when the
    document has no usable code.
    """

    code = str(raw.get("code") or "").strip()
    if not code:
        return None

    usage = raw.get("usageLimit")
    usage = usage if isinstance(usage, Mapping) else {}

    discount_type = str(_first(raw, "discountType", "type") or "percentage").strip().lower()
    if discount_type not in {"percentage", "fixed"}:
        discount_type = "percentage"

    max_discount = to_decimal(raw.get("maxDiscountAmount"))
    used_count = _coerce_int(_present(raw.get("usedCount"), usage.get("usedCount")))

    payload = {
        "code": code,
        "id": str(_first(raw, "id", "couponId") or ""),
        "title": str(_first(raw, "title", "name") or code),
        "description": str(raw.get("description") or ""),
        "discount_type": discount_type,
        "discount_value": clamp_non_negative(to_decimal(_first(raw, "discountValue", "value"))),
        "min_order_amount": clamp_non_negative(to_decimal(raw.get("minOrderAmount"))),
        "min_order_count": _coerce_int(raw.get("minOrderCount")) or 0,
        "max_discount_amount": max_discount if max_discount > ZERO else None,
        "valid_from": _coerce_timestamp(raw.get("validFrom")),
        "valid_till": _coerce_timestamp(_first(raw, "validTill", "validUntil")),
        "usage_limit": {
            "per_user_limit": _coerce_int(_present(usage.get("perUserLimit"), raw.get("maxUsagePerUser"))),
        },
        "max_uses": _coerce_int(_present(_first(raw, "maxUses", "maxUsage"), usage.get("totalUsage"))),
        "used_count": used_count if used_count is not None else 0,
        "is_active": _coerce_bool(raw.get("isActive"), True),
        "is_stackable": _coerce_bool(raw.get("isStackable"), False),
    }
    try:
        return Coupon.model_validate(payload)
    except ValidationError:
        logger.warning("Discarding malformed coupon document %s", code, exc_info=True)
        return None


class InMemoryCouponCatalog:
    """Catalog over a fixed set of coupons, keyed by case-sensitive code."""

    def __init__(self, coupons: Iterable[Coupon] = ()) -> None:
        self._coupons: dict[str, Coupon] = {coupon.code: coupon for coupon in coupons}

    @classmethod
    def from_documents(cls, documents: Iterable[Mapping[str, Any]]) -> InMemoryCouponCatalog:
        coupons = (coupon_from_document(document) for document in documents)
        return cls(coupon for coupon in coupons if coupon is not None)

    def add(self, coupon: Coupon) -> None:
        self._coupons[coupon.code] = coupon

    async def get_by_code(self, code: str) -> Coupon | None:
        return self._coupons.get(code.strip())

    async def list_active(self, now: datetime) -> list[Coupon]:
        """Active coupons whose validity window contains ``now``."""

        moment = now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
        return [
            coupon
            for coupon in self._coupons.values()
            if coupon.is_active
            and (coupon.valid_from is None or coupon.valid_from <= moment)
            and (coupon.valid_till is None or coupon.valid_till >= moment)
        ]
