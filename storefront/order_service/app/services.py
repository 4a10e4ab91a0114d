"""Service layer for turning a cart session into a persisted order."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from storefront.cart_service.app.services import CartSession
from storefront.common.config import StorefrontSettings

from .assembler import assemble
from .metrics import CHECKOUT_ATTEMPTS_TOTAL
from .schemas import DeliverySelection, OrderPayload

logger = logging.getLogger(__name__)


class OrderSink(Protocol):
    async def create_order(self, payload: OrderPayload) -> str: ...


@dataclass
class CheckoutResult:
    order_id: str | None
    payload: OrderPayload | None

    @property
    def placed(self) -> bool:
        return self.order_id is not None


class CheckoutService:
    """Assembles the order for a session and submits it."""

    def __init__(self, orders: OrderSink, *, settings: StorefrontSettings | None = None) -> None:
        self.orders = orders
        self.settings = settings

    def _with_defaults(self, delivery: DeliverySelection) -> DeliverySelection:
        if self.settings is None:
            return delivery
        defaults = {
            "delivery_charge": self.settings.delivery_charge,
            "payment_method": self.settings.payment_method,
            "delivery_type": self.settings.delivery_type,
        }
        update = {key: value for key, value in defaults.items() if key not in delivery.model_fields_set}
        return delivery.model_copy(update=update) if update else delivery

    async def checkout(self, session: CartSession, delivery: DeliverySelection) -> CheckoutResult:
        """Place an order for the session's cart.

        Returns a result without an order id when the cart is empty or the
        user is unknown. Errors from ``create_order`` propagate and leave the
        cart untouched.
        """

        payload = assemble(session.state, self._with_defaults(delivery), session.now(), customer_id=session.user_id)
        if payload is None:
            CHECKOUT_ATTEMPTS_TOTAL.labels(outcome="rejected").inc()
            return CheckoutResult(order_id=None, payload=None)

        # Let queued cart syncs land before the order closes the remote cart.
        await session.flush()
        try:
            order_id = await self.orders.create_order(payload)
        except Exception:
            CHECKOUT_ATTEMPTS_TOTAL.labels(outcome="failed").inc()
            logger.exception("Order creation failed for customer %s", payload.customer_id)
            raise

        CHECKOUT_ATTEMPTS_TOTAL.labels(outcome="placed").inc()
        logger.info("Order %s placed for customer %s", order_id, payload.customer_id)
        session.mark_ordered()
        return CheckoutResult(order_id=order_id, payload=payload)
