"""Session layer that owns a user's cart and mirrors it to the remote store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

from storefront.common.money import clamp_quantity
from storefront.common.tasks import SyncTaskRunner

from .catalog import CouponCatalog
from .coupons import check_eligibility, describe_ineligibility
from .metrics import CART_ACTIONS_TOTAL, CART_COUPON_REJECTIONS_TOTAL
from .reducer import (
    AddItem,
    ApplyCoupon,
    CartAction,
    Clear,
    RemoveCoupon,
    RemoveItem,
    SetItems,
    UpdateQuantity,
    reduce,
)
from .schemas import CartState, Coupon, CouponApplyResult, LineItem
from .sync import RemoteSyncAdapter

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


_ACTION_NAMES: dict[type, str] = {
    AddItem: "add_item",
    RemoveItem: "remove_item",
    UpdateQuantity: "update_quantity",
    ApplyCoupon: "apply_coupon",
    RemoveCoupon: "remove_coupon",
    SetItems: "set_items",
    Clear: "clear",
}


class CartSession:
    """One user's cart aggregate plus its best-effort remote mirror.

    Every mutation is applied locally first through :func:`reduce`. The
    matching remote call is then handed to the task runner and never awaited
    here, so a slow or failing backend cannot block the caller. The local
    state stays authoritative.
    """

    def __init__(
        self,
        user_id: str | None,
        *,
        adapter: RemoteSyncAdapter | None = None,
        runner: SyncTaskRunner | None = None,
        catalog: CouponCatalog | None = None,
        clock: Clock = utcnow,
        state: CartState | None = None,
    ) -> None:
        self.user_id = user_id
        self._adapter = adapter
        self._runner = runner
        self._catalog = catalog
        self._clock = clock
        self._state = state or CartState.empty()
        self._cart_id: str | None = None
        self._cart_lock = asyncio.Lock()

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def cart_id(self) -> str | None:
        return self._cart_id

    @property
    def adapter(self) -> RemoteSyncAdapter | None:
        return self._adapter

    def now(self) -> datetime:
        return self._clock()

    def dispatch(self, action: CartAction) -> CartState:
        """Apply ``action`` locally, then schedule the remote mirror of it."""

        previous = self._state
        self._state = reduce(previous, action, now=self._clock())
        CART_ACTIONS_TOTAL.labels(action=_ACTION_NAMES.get(type(action), "unknown")).inc()
        self._schedule_sync(action, previous, self._state)
        return self._state

    def add_item(self, item: LineItem) -> CartState:
        return self.dispatch(AddItem(item))

    def remove_item(self, item_id: str) -> CartState:
        return self.dispatch(RemoveItem(item_id))

    def update_quantity(self, item_id: str, quantity: int) -> CartState:
        return self.dispatch(UpdateQuantity(item_id, quantity))

    def remove_coupon(self) -> CartState:
        return self.dispatch(RemoveCoupon())

    def clear(self) -> CartState:
        return self.dispatch(Clear())

    def set_items(self, items: Iterable[LineItem], coupon: Coupon | None = None) -> CartState:
        return self.dispatch(SetItems(tuple(items), coupon))

    def item_quantity(self, item_id: str) -> int:
        return self._state.item_quantity(item_id)

    def apply_coupon(self, coupon: Coupon) -> CouponApplyResult:
        """Apply ``coupon`` and report whether it was retained on the cart."""

        state = self.dispatch(ApplyCoupon(coupon))
        if state.applied_coupon is not None:
            return CouponApplyResult(
                success=True,
                message=describe_ineligibility(None),
                discount=state.discount,
            )

        reason = check_eligibility(coupon, state.subtotal, state.items, self._clock()) or "zero_discount"
        CART_COUPON_REJECTIONS_TOTAL.labels(reason=reason).inc()
        logger.info("Coupon %s not applicable for user %s: %s", coupon.code, self.user_id, reason)
        return CouponApplyResult(success=False, message=describe_ineligibility(reason), reason=reason)

    async def apply_coupon_code(self, code: str) -> CouponApplyResult:
        """Resolve a typed-in code through the catalog and apply it."""

        cleaned = code.strip()
        if not cleaned:
            return CouponApplyResult(success=False, message="Please enter a coupon code", reason="empty_code")
        if self._catalog is None:
            return CouponApplyResult(
                success=False, message="Coupons are unavailable right now.", reason="no_catalog"
            )

        coupon = await self._catalog.get_by_code(cleaned)
        if coupon is None:
            CART_COUPON_REJECTIONS_TOTAL.labels(reason="not_found").inc()
            return CouponApplyResult(success=False, message="Invalid coupon code", reason="not_found")
        if not coupon.is_active:
            CART_COUPON_REJECTIONS_TOTAL.labels(reason="inactive").inc()
            return CouponApplyResult(
                success=False, message=describe_ineligibility("inactive"), reason="inactive"
            )
        return self.apply_coupon(coupon)

    async def load_from_remote(self) -> CartState:
        """Replace the local cart with the user's remote cart.

        An inactive or missing remote cart tears the local cart down. Lookup
        failures are logged and leave the local cart untouched.
        """

        if self._adapter is None or not self.user_id:
            return self._state
        try:
            snapshot = await self._adapter.get_active_cart(self.user_id)
        except Exception:
            logger.exception("Failed to load remote cart for user %s", self.user_id)
            return self._state

        now = self._clock()
        if snapshot is None or not snapshot.is_active:
            self._cart_id = None
            self._state = reduce(self._state, Clear(), now=now)
            return self._state

        self._cart_id = snapshot.cart_id
        self._state = reduce(self._state, SetItems(tuple(snapshot.items), snapshot.applied_coupon), now=now)
        if snapshot.applied_coupon is not None and self._state.applied_coupon is None:
            self._enqueue("remove_coupon", self._remote_remove_coupon())
        return self._state

    def mark_ordered(self) -> CartState:
        """Reset after a successful order; the remote cart was closed by the order."""

        self._cart_id = None
        self._state = CartState.empty()
        return self._state

    async def flush(self) -> None:
        if self._runner is not None:
            await self._runner.drain()

    async def aclose(self) -> None:
        """Push pending remote writes and stop the sync workers."""

        if self._runner is not None:
            await self._runner.close()

    async def _ensure_cart(self) -> str:
        async with self._cart_lock:
            if self._cart_id is not None:
                return self._cart_id
            assert self._adapter is not None and self.user_id
            snapshot = await self._adapter.get_active_cart(self.user_id)
            if snapshot is not None and snapshot.is_active:
                self._cart_id = snapshot.cart_id
            else:
                self._cart_id = await self._adapter.create_cart(self.user_id)
            return self._cart_id

    def _enqueue(self, operation: str, call: Callable[[str], Awaitable[object]]) -> None:
        if self._runner is None:
            return

        async def job() -> None:
            cart_id = await self._ensure_cart()
            await call(cart_id)

        self._runner.submit(f"cart:{self.user_id}", operation, job)

    def _remote_remove_coupon(self) -> Callable[[str], Awaitable[object]]:
        adapter, user_id = self._adapter, self.user_id
        assert adapter is not None and user_id is not None
        return lambda cart_id: adapter.remove_coupon(user_id, cart_id)

    def _schedule_sync(self, action: CartAction, previous: CartState, current: CartState) -> None:
        adapter, user_id = self._adapter, self.user_id
        if adapter is None or self._runner is None or not user_id:
            return

        if isinstance(action, AddItem):
            stored = current.find_by_product(action.item.product_id)
            if stored is not None:
                self._enqueue("add_item", lambda cart_id: adapter.add_item(user_id, cart_id, stored))
        elif isinstance(action, RemoveItem):
            item_id = action.item_id
            self._enqueue("remove_item", lambda cart_id: adapter.remove_item(user_id, cart_id, item_id))
        elif isinstance(action, UpdateQuantity):
            item_id, quantity = action.item_id, clamp_quantity(int(action.quantity))
            self._enqueue(
                "update_quantity",
                lambda cart_id: adapter.update_quantity(user_id, cart_id, item_id, quantity),
            )
        elif isinstance(action, ApplyCoupon) and current.applied_coupon is not None:
            applied = current.applied_coupon
            self._enqueue("apply_coupon", lambda cart_id: adapter.apply_coupon(user_id, cart_id, applied))
        elif isinstance(action, RemoveCoupon):
            self._enqueue("remove_coupon", self._remote_remove_coupon())
            return
        elif isinstance(action, Clear):
            self._enqueue("clear_cart", lambda cart_id: adapter.clear_cart(user_id, cart_id))

        # Mutations can silently drop a coupon that stopped qualifying.
        if (
            previous.applied_coupon is not None
            and current.applied_coupon is None
            and not isinstance(action, (SetItems, Clear))
        ):
            self._enqueue("remove_coupon", self._remote_remove_coupon())
