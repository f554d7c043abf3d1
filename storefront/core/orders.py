"""
Order lifecycle: pending order creation, checkout hand-off and payment confirmation.

Flow:
1. Validate the submitted cart
2. Compute the total server-side
3. Persist a pending order and commit
4. Open a Stripe Checkout session tagged with the order id
5. Return the session id for redirect

The order only becomes ``paid`` through ``mark_paid``, which the webhook
handler calls after a verified ``checkout.session.completed`` event.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.core.cart import TWOPLACES, CartItem
from storefront.core.exceptions import (
    InvalidCartError,
    OrderNotFoundError,
    PaymentSessionError,
)
from storefront.database.models import ORDER_STATUS_PAID, ORDER_STATUS_PENDING, Order
from storefront.integrations.stripe_client import StripeClient, StripeError
from storefront.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

CORRELATION_KEY = "orderId"


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of a successful checkout start."""

    order_id: str
    payment_session_id: str
    payment_url: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (half-up)."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidCartError("price must be a valid decimal") from exc
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_total(items: Sequence[CartItem]) -> Decimal:
    return sum((i.unit_price * i.quantity for i in items), Decimal("0")).quantize(
        TWOPLACES, rounding=ROUND_HALF_UP
    )


class OrderService:
    """
    Order lifecycle manager.

    Owns the two order states (``pending``, ``paid``) and the single
    transition between them.
    """

    def __init__(self, stripe_client: Optional[StripeClient] = None):
        """
        Initialize order service.

        Args:
            stripe_client: Optional Stripe client (created on first checkout if omitted)
        """
        self.settings = get_settings()
        self._stripe_client = stripe_client

    @property
    def stripe_client(self) -> StripeClient:
        if self._stripe_client is None:
            self._stripe_client = StripeClient()
        return self._stripe_client

    @staticmethod
    def validate_cart(items: Optional[Sequence[CartItem]]) -> None:
        """
        Validate cart lines before any side effect.

        Args:
            items: Cart lines

        Raises:
            InvalidCartError: If the cart is empty or a line is invalid
        """
        if not items:
            raise InvalidCartError("Cart is empty")

        for idx, item in enumerate(items):
            qty = item.quantity
            if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
                raise InvalidCartError(f"Invalid quantity at index {idx}: {qty!r}")
            price = item.unit_price
            if not isinstance(price, Decimal) or not price.is_finite() or price < 0:
                raise InvalidCartError(f"Invalid price at index {idx}: {price!r}")
            # Prices must map exactly onto minor units.
            try:
                exact = price == price.quantize(TWOPLACES)
            except InvalidOperation:
                exact = False
            if not exact:
                raise InvalidCartError(f"Invalid price at index {idx}: {price!r}")
            if not item.name:
                raise InvalidCartError(f"Missing name at index {idx}")

    def _build_line_items(self, items: Sequence[CartItem]) -> List[Dict[str, Any]]:
        line_items = []
        for item in items:
            product_data: Dict[str, Any] = {"name": item.name}
            if item.image_url:
                product_data["images"] = [item.image_url]
            line_items.append(
                {
                    "price_data": {
                        "currency": self.settings.currency,
                        "product_data": product_data,
                        "unit_amount": to_minor_units(item.unit_price),
                    },
                    "quantity": item.quantity,
                }
            )
        return line_items

    async def create_order(
        self,
        items: Sequence[CartItem],
        customer_info: Dict[str, Any],
        db: AsyncSession,
        user_id: Optional[str] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> CheckoutResult:
        """
        Create a pending order and open a payment session for it.

        Args:
            items: Cart lines to snapshot into the order
            customer_info: Contact and shipping details
            db: Database session
            user_id: Authenticated identity placing the order, if any
            success_url: Redirect after payment (configured default if omitted)
            cancel_url: Redirect on cancel (configured default if omitted)

        Returns:
            CheckoutResult: New order id and payment session id

        Raises:
            InvalidCartError: If the cart fails validation (nothing is persisted)
            PaymentSessionError: If Stripe rejects the session; the order stays pending
        """
        try:
            self.validate_cart(items)
        except InvalidCartError as e:
            metrics.record_checkout("invalid_cart")
            logger.warning("checkout_cart_rejected", error=str(e))
            raise

        total = compute_total(items)
        line_items = self._build_line_items(items)

        order = Order(
            user_id=user_id,
            customer_info=dict(customer_info),
            items=[i.to_dict() for i in items],
            total=total,
            currency=self.settings.currency,
            status=ORDER_STATUS_PENDING,
        )
        db.add(order)
        await db.commit()

        logger.info(
            "order_created",
            order_id=order.id,
            total=str(total),
            item_count=len(items),
            user_id=user_id,
        )
        metrics.record_order_total(float(total))

        default_success, default_cancel = self.settings.checkout_urls()
        try:
            session = await self.stripe_client.create_checkout_session(
                line_items=line_items,
                success_url=success_url or default_success,
                cancel_url=cancel_url or default_cancel,
                metadata={CORRELATION_KEY: order.id},
                customer_email=customer_info.get("email") or None,
            )
        except StripeError as e:
            metrics.record_checkout("payment_error")
            logger.error(
                "checkout_session_failed",
                order_id=order.id,
                error_type=e.error_type.value,
                error=str(e),
            )
            raise PaymentSessionError(
                f"Failed to create checkout session: {e}", order_id=order.id
            ) from e

        order.payment_session_id = session.id
        await db.commit()

        metrics.record_checkout("created")
        logger.info("checkout_started", order_id=order.id, session_id=session.id)

        return CheckoutResult(
            order_id=order.id,
            payment_session_id=session.id,
            payment_url=session.url,
        )

    async def mark_paid(self, order_id: str, db: AsyncSession) -> bool:
        """
        Transition an order from pending to paid.

        Uses a single conditional UPDATE so concurrent or repeated deliveries
        of the same event cannot double-apply.

        Args:
            order_id: Order identifier from the payment session metadata
            db: Database session

        Returns:
            bool: True if the order transitioned, False if it was already paid

        Raises:
            OrderNotFoundError: If no order has this id
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == ORDER_STATUS_PENDING)
            .values(status=ORDER_STATUS_PAID, paid_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        if result.rowcount:
            logger.info("order_marked_paid", order_id=order_id)
            return True

        exists = await db.scalar(select(Order.id).where(Order.id == order_id))
        if exists is None:
            raise OrderNotFoundError(order_id)

        logger.info("order_already_paid", order_id=order_id)
        return False

    async def get_order(self, order_id: str, db: AsyncSession) -> Order:
        order = await db.get(Order, order_id, populate_existing=True)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders_for_user(self, user_id: str, db: AsyncSession) -> List[Order]:
        """Order history for one identity, newest first."""
        result = await db.scalars(
            select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc())
        )
        return list(result)

    async def list_all_orders(self, db: AsyncSession, limit: int = 100) -> List[Order]:
        """All orders for the admin dashboard, newest first."""
        result = await db.scalars(
            select(Order).order_by(Order.created_at.desc()).limit(limit)
        )
        return list(result)
