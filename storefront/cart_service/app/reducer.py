"""Cart actions and the pure reducer that applies them."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence, Union

from storefront.common.money import ZERO, clamp_non_negative, clamp_quantity, round_money

from .coupons import evaluate
from .schemas import AppliedCoupon, CartState, Coupon, LineItem


@dataclass(frozen=True, slots=True)
class AddItem:
    item: LineItem


@dataclass(frozen=True, slots=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True, slots=True)
class UpdateQuantity:
    item_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class ApplyCoupon:
    coupon: Coupon


@dataclass(frozen=True, slots=True)
class RemoveCoupon:
    pass


@dataclass(frozen=True, slots=True)
class SetItems:
    items: Sequence[LineItem]
    coupon: Coupon | None = None


@dataclass(frozen=True, slots=True)
class Clear:
    pass


CartAction = Union[AddItem, RemoveItem, UpdateQuantity, ApplyCoupon, RemoveCoupon, SetItems, Clear]


def _attach(coupon: Coupon, discount: Decimal, now: datetime) -> AppliedCoupon:
    if isinstance(coupon, AppliedCoupon):
        return coupon.model_copy(update={"discount_amount": discount})
    payload = coupon.model_dump()
    payload.update(applied_at=now, discount_amount=discount)
    return AppliedCoupon.model_validate(payload)


def recompute(items: Iterable[LineItem], coupon: Coupon | None, now: datetime) -> CartState:
    """Build a cart state whose derived fields match ``items`` and ``coupon``.

    The subtotal is summed at full precision and only rounded when stored. A
    coupon that evaluates to zero is dropped rather than kept at zero. The
    result is stamped with ``now`` so the same totals can be re-derived later.
    """

    line_items = tuple(item for item in items if item.quantity > 0)
    raw_subtotal = sum((item.line_total for item in line_items), ZERO)

    applied: AppliedCoupon | None = None
    discount = ZERO
    if coupon is not None:
        discount = evaluate(coupon, raw_subtotal, line_items, now)
        if discount > ZERO:
            applied = _attach(coupon, discount, now)

    subtotal = round_money(raw_subtotal)
    return CartState(
        items=line_items,
        applied_coupon=applied,
        total_items=sum(item.quantity for item in line_items),
        subtotal=subtotal,
        discount=discount,
        total_amount=clamp_non_negative(subtotal - discount),
        priced_at=now,
    )


def _merge_rows(items: Iterable[LineItem]) -> list[LineItem]:
    merged: list[LineItem] = []
    by_product: dict[str, int] = {}
    seen_ids: set[str] = set()
    for item in items:
        if item.quantity <= 0:
            continue
        index = by_product.get(item.product_id)
        if index is not None:
            current = merged[index]
            merged[index] = current.model_copy(update={"quantity": current.quantity + item.quantity})
            continue
        if item.id in seen_ids:
            item = item.model_copy(update={"id": uuid.uuid4().hex})
        seen_ids.add(item.id)
        by_product[item.product_id] = len(merged)
        merged.append(item)
    return merged


def _add_item(state: CartState, new_item: LineItem) -> list[LineItem]:
    existing = state.find_by_product(new_item.product_id)
    if existing is not None:
        return [
            item.model_copy(update={"quantity": item.quantity + 1}) if item.id == existing.id else item
            for item in state.items
        ]
    if state.find_item(new_item.id) is not None:
        new_item = new_item.model_copy(update={"id": uuid.uuid4().hex})
    return [*state.items, new_item.model_copy(update={"quantity": 1})]


def _update_quantity(state: CartState, item_id: str, quantity: int) -> list[LineItem]:
    target = clamp_quantity(int(quantity))
    updated: list[LineItem] = []
    for item in state.items:
        if item.id != item_id:
            updated.append(item)
        elif target > 0:
            updated.append(item.model_copy(update={"quantity": target}))
    return updated


def reduce(state: CartState, action: CartAction, *, now: datetime) -> CartState:
    """Apply ``action`` to ``state`` and return the new, fully derived state."""

    if isinstance(action, AddItem):
        return recompute(_add_item(state, action.item), state.applied_coupon, now)
    if isinstance(action, RemoveItem):
        remaining = [item for item in state.items if item.id != action.item_id]
        return recompute(remaining, state.applied_coupon, now)
    if isinstance(action, UpdateQuantity):
        return recompute(_update_quantity(state, action.item_id, action.quantity), state.applied_coupon, now)
    if isinstance(action, ApplyCoupon):
        coupon = action.coupon
        if isinstance(coupon, AppliedCoupon):
            coupon = coupon.as_coupon()
        return recompute(state.items, coupon, now)
    if isinstance(action, RemoveCoupon):
        return recompute(state.items, None, now)
    if isinstance(action, SetItems):
        return recompute(_merge_rows(action.items), action.coupon, now)
    if isinstance(action, Clear):
        return CartState.empty()
    msg = f"Unsupported cart action: {type(action).__name__}"
    raise TypeError(msg)
