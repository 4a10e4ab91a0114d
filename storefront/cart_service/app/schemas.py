"""Pydantic schemas for the cart aggregate and coupons."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

from storefront.common.money import ZERO

ProviderKind = Literal["restaurant", "warehouse"]
DiscountType = Literal["percentage", "fixed"]


def _utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class LineItem(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, min_length=1)
    product_id: str = Field(min_length=1, max_length=128, alias="productId")
    name: str = Field(min_length=1, max_length=255)
    unit_price: Decimal = Field(ge=Decimal("0"), alias="unitPrice")
    quantity: PositiveInt = 1
    image: str = ""
    provider_id: str = Field(default="", alias="providerId")
    provider_kind: ProviderKind | None = Field(default=None, alias="providerKind")
    service_id: str = Field(default="", alias="serviceId")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("product_id", "name")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            msg = "value must be non-empty"
            raise ValueError(msg)
        return cleaned

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class UsageLimit(BaseModel):
    per_user_limit: int | None = Field(default=None, ge=0, alias="perUserLimit")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Coupon(BaseModel):
    """A backend discount rule, read-only from the cart's point of view."""

    code: str = Field(min_length=1, max_length=64)
    id: str = ""
    title: str = ""
    description: str = ""
    discount_type: DiscountType = Field(default="percentage", alias="discountType")
    discount_value: Decimal = Field(default=ZERO, ge=Decimal("0"), alias="discountValue")
    min_order_amount: Decimal = Field(default=ZERO, ge=Decimal("0"), alias="minOrderAmount")
    min_order_count: int = Field(default=0, ge=0, alias="minOrderCount")
    max_discount_amount: Decimal | None = Field(default=None, ge=Decimal("0"), alias="maxDiscountAmount")
    valid_from: datetime | None = Field(default=None, alias="validFrom")
    valid_till: datetime | None = Field(default=None, alias="validTill")
    usage_limit: UsageLimit = Field(default_factory=UsageLimit, alias="usageLimit")
    max_uses: int | None = Field(default=None, ge=0, alias="maxUses")
    used_count: int = Field(default=0, ge=0, alias="usedCount")
    is_active: bool = Field(default=True, alias="isActive")
    is_stackable: bool = Field(default=False, alias="isStackable")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("valid_from", "valid_till")
    @classmethod
    def _normalize_timestamp(cls, value: datetime | None) -> datetime | None:
        return _utc(value)


class AppliedCoupon(Coupon):
    """Coupon snapshot attached to a cart with its discount materialized."""

    applied_at: datetime = Field(alias="appliedAt")
    discount_amount: Decimal = Field(default=ZERO, ge=Decimal("0"), alias="discountAmount")

    @field_validator("applied_at")
    @classmethod
    def _normalize_applied_at(cls, value: datetime) -> datetime:
        return _utc(value)  # type: ignore[return-value]

    def as_coupon(self) -> Coupon:
        data = self.model_dump(exclude={"applied_at", "discount_amount"})
        return Coupon.model_validate(data)


class CartState(BaseModel):
    """The cart aggregate. Derived fields are written only by the reducer."""

    items: tuple[LineItem, ...] = ()
    applied_coupon: AppliedCoupon | None = Field(default=None, alias="appliedCoupon")
    total_items: int = Field(default=0, ge=0, alias="totalItems")
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    total_amount: Decimal = Field(default=ZERO, alias="totalAmount")
    priced_at: datetime | None = Field(default=None, alias="pricedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @classmethod
    def empty(cls) -> CartState:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: str) -> LineItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def find_by_product(self, product_id: str) -> LineItem | None:
        return next((item for item in self.items if item.product_id == product_id), None)

    def item_quantity(self, item_id: str) -> int:
        item = self.find_item(item_id)
        return item.quantity if item is not None else 0


class CouponApplyResult(BaseModel):
    success: bool
    message: str
    reason: str | None = None
    discount: Decimal = ZERO
