"""Prometheus metrics for checkout."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter


CHECKOUT_ATTEMPTS_TOTAL: Final = Counter(
    "storefront_checkout_attempts_total",
    "Checkout attempts by outcome.",
    labelnames=("outcome",),
)
