"""SQLAlchemy implementation of the remote cart sync adapter."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from storefront.common.database import lifespan_session
from storefront.common.money import from_cents, to_cents

from .models import CartDocument, CartItemDocument, OrderDocument
from .schemas import AppliedCoupon, LineItem
from .sync import CartSnapshot

if TYPE_CHECKING:  # pragma: no cover - typing only
    from storefront.order_service.app.schemas import OrderPayload

logger = logging.getLogger(__name__)

# Only these coupon fields are persisted on the cart document.
_STORED_COUPON_FIELDS = {
    "id",
    "code",
    "title",
    "discount_type",
    "discount_value",
    "max_discount_amount",
    "min_order_amount",
    "min_order_count",
    "applied_at",
    "discount_amount",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_line_item(row: CartItemDocument) -> LineItem:
    return LineItem(
        id=row.item_id,
        product_id=row.product_id,
        name=row.name,
        unit_price=from_cents(row.unit_price_cents),
        quantity=row.quantity,
        image=row.image,
        provider_id=row.provider_id,
        provider_kind=row.provider_kind,
        service_id=row.service_id,
    )


def _to_applied_coupon(raw: dict[str, Any] | None) -> AppliedCoupon | None:
    if not raw:
        return None
    try:
        return AppliedCoupon.model_validate(raw)
    except ValidationError:
        logger.warning("Ignoring unreadable applied coupon %s", raw.get("code"), exc_info=True)
        return None


def _to_snapshot(cart: CartDocument) -> CartSnapshot:
    return CartSnapshot(
        cart_id=cart.id,
        user_id=cart.user_id,
        status="active" if cart.status == "active" else "inactive",
        items=[_to_line_item(row) for row in cart.items],
        applied_coupon=_to_applied_coupon(cart.applied_coupon),
        used_for_order=cart.used_for_order,
    )


class SqlCartSyncAdapter:
    """Stores carts, cart items and orders as rows; one unit of work per call."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _load_cart(self, session: AsyncSession, user_id: str, cart_id: str) -> CartDocument:
        result = await session.execute(
            select(CartDocument)
            .options(selectinload(CartDocument.items))
            .where(CartDocument.id == cart_id, CartDocument.user_id == user_id)
        )
        cart = result.scalar_one_or_none()
        if cart is None:
            raise KeyError("Cart not found")
        return cart

    @staticmethod
    def _touch(cart: CartDocument) -> None:
        cart.status = "active"
        cart.updated_at = _now()
        cart.item_count = sum(row.quantity for row in cart.items)
        cart.total_amount_cents = sum(row.total_price_cents for row in cart.items)

    async def _latest_cart(self, session: AsyncSession, user_id: str, status: str) -> CartDocument | None:
        result = await session.execute(
            select(CartDocument)
            .options(selectinload(CartDocument.items))
            .where(CartDocument.user_id == user_id, CartDocument.status == status)
            .order_by(CartDocument.updated_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_cart(self, user_id: str) -> CartSnapshot | None:
        """Return the active cart, falling back to the newest inactive one."""

        async with lifespan_session(self._session_factory) as session:
            cart = await self._latest_cart(session, user_id, "active")
            if cart is None:
                cart = await self._latest_cart(session, user_id, "inactive")
            return _to_snapshot(cart) if cart is not None else None

    async def create_cart(self, user_id: str) -> str:
        """Reactivate an inactive cart not used for an order, or create one."""

        async with lifespan_session(self._session_factory) as session:
            result = await session.execute(
                select(CartDocument)
                .where(
                    CartDocument.user_id == user_id,
                    CartDocument.status == "inactive",
                    CartDocument.used_for_order.is_(False),
                )
                .order_by(CartDocument.updated_at.desc())
                .limit(1)
            )
            cart = result.scalar_one_or_none()
            if cart is not None:
                cart.status = "active"
                cart.updated_at = _now()
                return cart.id

            cart = CartDocument(id=uuid.uuid4().hex, user_id=user_id, status="active")
            session.add(cart)
            await session.flush()
            logger.info("Created cart %s for user %s", cart.id, user_id)
            return cart.id

    async def add_item(self, user_id: str, cart_id: str, item: LineItem) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            existing = next((row for row in cart.items if row.product_id == item.product_id), None)
            if existing is not None:
                existing.quantity += 1
                existing.total_price_cents = existing.quantity * existing.unit_price_cents
            else:
                unit_price_cents = to_cents(item.unit_price)
                cart.items.append(
                    CartItemDocument(
                        item_id=item.id,
                        product_id=item.product_id,
                        name=item.name,
                        unit_price_cents=unit_price_cents,
                        quantity=1,
                        total_price_cents=unit_price_cents,
                        image=item.image,
                        provider_id=item.provider_id,
                        provider_kind=item.provider_kind,
                        service_id=item.service_id,
                    )
                )
            self._touch(cart)

    async def update_quantity(self, user_id: str, cart_id: str, item_id: str, quantity: int) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            row = next((entry for entry in cart.items if entry.item_id == item_id), None)
            if row is not None:
                if quantity <= 0:
                    cart.items.remove(row)
                else:
                    row.quantity = quantity
                    row.total_price_cents = quantity * row.unit_price_cents
            self._touch(cart)

    async def remove_item(self, user_id: str, cart_id: str, item_id: str) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            row = next((entry for entry in cart.items if entry.item_id == item_id), None)
            if row is not None:
                cart.items.remove(row)
            self._touch(cart)

    async def clear_cart(self, user_id: str, cart_id: str) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            cart.items.clear()
            self._touch(cart)

    async def apply_coupon(self, user_id: str, cart_id: str, coupon: AppliedCoupon) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            cart.applied_coupon = coupon.model_dump(mode="json", by_alias=True, include=_STORED_COUPON_FIELDS)
            self._touch(cart)

    async def remove_coupon(self, user_id: str, cart_id: str) -> None:
        async with lifespan_session(self._session_factory) as session:
            cart = await self._load_cart(session, user_id, cart_id)
            cart.applied_coupon = None
            self._touch(cart)

    async def create_order(self, payload: OrderPayload) -> str:
        """Persist the order and close the customer's active cart."""

        async with lifespan_session(self._session_factory) as session:
            order = OrderDocument(
                id=uuid.uuid4().hex,
                customer_id=payload.customer_id,
                status=payload.status,
                payment_status=payload.payment_status,
                final_amount_cents=to_cents(payload.final_amount),
                payload=payload.model_dump(mode="json", by_alias=True),
                created_at=payload.created_at,
            )
            session.add(order)

            result = await session.execute(
                select(CartDocument).where(
                    CartDocument.user_id == payload.customer_id,
                    CartDocument.status == "active",
                )
            )
            for cart in result.scalars():
                cart.status = "inactive"
                cart.used_for_order = True
                cart.updated_at = _now()
            await session.flush()
            logger.info("Created order %s for customer %s", order.id, payload.customer_id)
            return order.id

    async def get_order(self, order_id: str) -> dict[str, Any] | None:
        async with lifespan_session(self._session_factory) as session:
            order = await session.get(OrderDocument, order_id)
            return dict(order.payload) if order is not None else None
