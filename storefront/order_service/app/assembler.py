"""Builds the immutable order payload from a cart at checkout time."""

from __future__ import annotations

import logging
import re
from datetime import datetime
from decimal import Decimal

from storefront.cart_service.app.reducer import recompute
from storefront.cart_service.app.schemas import CartState, LineItem
from storefront.common.money import round_money

from .schemas import DeliveryAddress, DeliverySelection, OrderPayload, ResolvedAddress

logger = logging.getLogger(__name__)

TAX_RATE = Decimal("0.05")

_PINCODE_PATTERN = re.compile(r"(?<!\d)(\d{6})(?!\d)")


def extract_pincode(text: str) -> str:
    """First standalone 6-digit run in ``text``, or an empty string."""

    match = _PINCODE_PATTERN.search(text or "")
    return match.group(1) if match else ""


def extract_city(text: str) -> str:
    """Best-effort city: the comma-separated token third from the end.

    Matches the usual ``street, locality, city, state pincode, country``
    layout of geocoded addresses. It is a heuristic with no guarantee for
    arbitrary input; structured fields always take precedence.
    """

    parts = [part.strip() for part in (text or "").split(",") if part.strip()]
    if len(parts) < 3:
        return ""
    return parts[-3]


def resolve_address(address: DeliveryAddress | None) -> ResolvedAddress | None:
    if address is None:
        return None
    pincode = (address.pincode or "").strip() or extract_pincode(address.line1)
    city = (address.city or "").strip() or extract_city(address.line1)
    return ResolvedAddress(
        line1=address.line1,
        city=city,
        state=(address.state or "").strip(),
        pincode=pincode,
        geo_point=address.geo_point,
        contact_name=address.contact_name,
        contact_phone=address.contact_phone,
    )


def compute_taxes(total_amount: Decimal) -> Decimal:
    return round_money(total_amount * TAX_RATE)


def _provider_links(items: tuple[LineItem, ...]) -> dict[str, str]:
    first = items[0]
    kind = first.provider_kind or "restaurant"
    links = {"type": kind, "restaurant_id": "", "warehouse_id": ""}
    links["restaurant_id" if kind == "restaurant" else "warehouse_id"] = first.provider_id
    return links


def assemble(
    cart: CartState,
    delivery: DeliverySelection,
    now: datetime,
    *,
    customer_id: str | None,
) -> OrderPayload | None:
    """Snapshot ``cart`` into an order, or return None if checkout cannot proceed.

    Items, coupon and totals are copied from the cart as shown to the shopper.
    The order carries the moment the cart was priced so those totals can be
    re-derived from the payload alone.
    """

    if not customer_id:
        logger.info("Checkout blocked: no resolved customer")
        return None
    if cart.is_empty:
        logger.info("Checkout blocked for %s: cart is empty", customer_id)
        return None

    taxes = compute_taxes(cart.total_amount)
    coupons = (cart.applied_coupon,) if cart.applied_coupon is not None else ()

    return OrderPayload(
        customer_id=customer_id,
        items=tuple(cart.items),
        subtotal=cart.subtotal,
        discount=cart.discount,
        total_amount=cart.total_amount,
        applied_coupons=coupons,
        delivery_address=resolve_address(delivery.address),
        time_slot=delivery.time_slot,
        instructions=delivery.instructions,
        payment_method=delivery.payment_method,
        delivery_type=delivery.delivery_type,
        delivery_charge=delivery.delivery_charge,
        taxes=taxes,
        final_amount=cart.total_amount + delivery.delivery_charge + taxes,
        created_at=now,
        updated_at=now,
        priced_at=cart.priced_at or now,
        **_provider_links(cart.items),
    )


def recompute_totals(payload: OrderPayload) -> CartState:
    """Re-derive cart totals from the payload's own items and coupons at its pricing time."""

    coupon = payload.applied_coupons[0] if payload.applied_coupons else None
    return recompute(payload.items, coupon, payload.priced_at)
