"""Pydantic schemas for checkout selections and the order payload."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from storefront.cart_service.app.schemas import AppliedCoupon, LineItem, ProviderKind
from storefront.common.money import ZERO

DEFAULT_DELIVERY_CHARGE = Decimal("20.00")
DEFAULT_PAYMENT_METHOD = "UPI"
DEFAULT_DELIVERY_TYPE = "delivery"

OrderStatus = Literal[
    "pending",
    "confirmed",
    "preparing",
    "ready",
    "assigned",
    "out_for_delivery",
    "delivered",
    "cancelled",
]
PaymentStatus = Literal["pending", "completed", "failed"]


class GeoPoint(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    model_config = ConfigDict(frozen=True)


class DeliveryAddress(BaseModel):
    """Address as handed over by the address picker."""

    id: str = ""
    label: str = ""
    line1: str = Field(default="", alias="address")
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    geo_point: GeoPoint | None = Field(default=None, alias="geoPoint")
    contact_name: str = Field(default="", alias="contactName")
    contact_phone: str = Field(default="", alias="contactPhone")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TimeSlot(BaseModel):
    id: str = ""
    label: str = ""
    start: datetime | None = None
    end: datetime | None = None

    model_config = ConfigDict(frozen=True)


class DeliverySelection(BaseModel):
    address: DeliveryAddress | None = None
    time_slot: TimeSlot | None = Field(default=None, alias="timeSlot")
    instructions: str = ""
    delivery_charge: Decimal = Field(default=DEFAULT_DELIVERY_CHARGE, ge=Decimal("0"), alias="deliveryCharge")
    payment_method: str = Field(default=DEFAULT_PAYMENT_METHOD, min_length=1, alias="paymentMethod")
    delivery_type: str = Field(default=DEFAULT_DELIVERY_TYPE, min_length=1, alias="deliveryType")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ResolvedAddress(BaseModel):
    line1: str = ""
    city: str = ""
    state: str = ""
    pincode: str = ""
    geo_point: GeoPoint | None = Field(default=None, alias="geoPoint")
    contact_name: str = Field(default="", alias="contactName")
    contact_phone: str = Field(default="", alias="contactPhone")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class OrderPayload(BaseModel):
    """Immutable checkout snapshot submitted for order persistence and payment."""

    customer_id: str = Field(min_length=1, alias="customerId")
    items: tuple[LineItem, ...]
    subtotal: Decimal
    discount: Decimal = ZERO
    total_amount: Decimal = Field(alias="totalAmount")
    applied_coupons: tuple[AppliedCoupon, ...] = Field(default=(), alias="appliedCoupons")
    delivery_address: ResolvedAddress | None = Field(default=None, alias="deliveryAddress")
    time_slot: TimeSlot | None = Field(default=None, alias="timeSlot")
    instructions: str = ""
    payment_method: str = Field(alias="paymentMethod")
    delivery_type: str = Field(alias="deliveryType")
    delivery_charge: Decimal = Field(alias="deliveryCharges")
    taxes: Decimal
    final_amount: Decimal = Field(alias="finalAmount")
    type: ProviderKind = "restaurant"
    restaurant_id: str = Field(default="", alias="restaurantId")
    warehouse_id: str = Field(default="", alias="warehouseId")
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = Field(default="pending", alias="paymentStatus")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    priced_at: datetime = Field(alias="pricedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)
