"""Prometheus metrics for the cart engine."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter


CART_ACTIONS_TOTAL: Final = Counter(
    "storefront_cart_actions_total",
    "Number of cart actions applied to a session.",
    labelnames=("action",),
)

CART_COUPON_REJECTIONS_TOTAL: Final = Counter(
    "storefront_cart_coupon_rejections_total",
    "Coupons that were requested but not retained on the cart.",
    labelnames=("reason",),
)

CART_SYNC_FAILURES_TOTAL: Final = Counter(
    "storefront_cart_sync_failures_total",
    "Remote cart sync jobs that raised and were swallowed.",
    labelnames=("operation",),
)


def record_sync_failure(operation: str, _exc: BaseException) -> None:
    CART_SYNC_FAILURES_TOTAL.labels(operation=operation).inc()
