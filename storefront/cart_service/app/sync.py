"""Boundary contract for the remote cart/order document store."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .schemas import AppliedCoupon, LineItem

if TYPE_CHECKING:  # pragma: no cover - typing only
    from storefront.order_service.app.schemas import OrderPayload


class CartSnapshot(BaseModel):
    cart_id: str = Field(alias="cartId")
    user_id: str = Field(alias="userId")
    status: Literal["active", "inactive"] = "active"
    items: list[LineItem] = Field(default_factory=list)
    applied_coupon: AppliedCoupon | None = Field(default=None, alias="appliedCoupon")
    used_for_order: bool = Field(default=False, alias="usedForOrder")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class RemoteSyncAdapter(Protocol):
    """Persistence collaborator. Cart mutations are best-effort; ``create_order`` is awaited."""

    async def get_active_cart(self, user_id: str) -> CartSnapshot | None: ...

    async def create_cart(self, user_id: str) -> str: ...

    async def add_item(self, user_id: str, cart_id: str, item: LineItem) -> None: ...

    async def remove_item(self, user_id: str, cart_id: str, item_id: str) -> None: ...

    async def update_quantity(self, user_id: str, cart_id: str, item_id: str, quantity: int) -> None: ...

    async def clear_cart(self, user_id: str, cart_id: str) -> None: ...

    async def apply_coupon(self, user_id: str, cart_id: str, coupon: AppliedCoupon) -> None: ...

    async def remove_coupon(self, user_id: str, cart_id: str) -> None: ...

    async def create_order(self, payload: OrderPayload) -> str: ...
