"""Money and quantity primitives used by every cart calculation."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """Coerce a loosely typed numeric value into a Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``. Anything
    that cannot be parsed, including NaN and infinities, yields ``default``.
    """

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    else:
        return default
    if not result.is_finite():
        return default
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to cents using half-up rounding."""

    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_non_negative(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO


def clamp_quantity(quantity: int) -> int:
    return quantity if quantity > 0 else 0


def to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal("100")).quantize(CENT)
