"""
Stripe webhook handler with signature verification and order reconciliation.

Implements:
- Webhook signature verification over the raw request body
- Typed parsing of the verified event
- Event filtering (only completed checkout sessions are acted on)
- Correlation of the event to an order through session metadata
- Idempotent pending -> paid transition
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import stripe
import structlog
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.core.exceptions import (
    MissingCorrelationError,
    OrderNotFoundError,
    SignatureVerificationError,
)
from storefront.core.orders import CORRELATION_KEY, OrderService
from storefront.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"


class StripeEventData(BaseModel):
    object: Dict[str, Any] = Field(default_factory=dict)


class StripeEvent(BaseModel):
    """The subset of a Stripe event envelope the storefront reads."""

    id: str
    type: str
    data: StripeEventData = Field(default_factory=StripeEventData)


@dataclass(frozen=True)
class WebhookResult:
    """
    Outcome of an authenticated, parsed webhook event.

    ``status`` is one of ``processed``, ``already_paid``, ``ignored``,
    ``order_not_found`` or ``reconciliation_failed``. All of them are
    acknowledged to Stripe with HTTP 200.
    """

    status: str
    event_id: str
    event_type: str
    order_id: Optional[str] = None


class WebhookHandler:
    """
    Handles Stripe webhook events.

    Unverified payloads are rejected before anything else happens. Once a
    payload is verified and parsed, the handler always produces a result to
    acknowledge, even when the order update fails; those failures surface
    through logs and the reconciliation failure counter only.
    """

    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        webhook_secret: Optional[str] = None,
    ):
        """
        Initialize webhook handler.

        Args:
            order_service: Order lifecycle manager that applies the transition
            webhook_secret: Optional signing secret (uses config if not provided)
        """
        self.settings = get_settings()
        self.order_service = order_service or OrderService()
        self.webhook_secret = webhook_secret or self.settings.stripe_webhook_secret

    def verify_signature(self, payload: bytes, signature: Optional[str]) -> StripeEvent:
        """
        Verify webhook signature and parse the event.

        Args:
            payload: Raw request body as bytes
            signature: Stripe-Signature header value

        Returns:
            StripeEvent: Verified event

        Raises:
            SignatureVerificationError: If the signature is missing or wrong,
                the timestamp is outside tolerance, or the body is not an event
        """
        if not signature:
            logger.warning("webhook_signature_missing")
            raise SignatureVerificationError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                self.settings.webhook_tolerance_seconds,
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise SignatureVerificationError(f"Invalid webhook signature: {e}") from e

        try:
            event = StripeEvent.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("webhook_payload_invalid", error=str(e))
            raise SignatureVerificationError(f"Malformed webhook payload: {e}") from e

        logger.info("webhook_signature_verified", event_id=event.id, event_type=event.type)
        return event

    @staticmethod
    def extract_order_id(event: StripeEvent) -> str:
        """
        Read the correlation id from the session metadata.

        Raises:
            MissingCorrelationError: If metadata or the order id is absent
        """
        metadata = event.data.object.get("metadata") or {}
        order_id = metadata.get(CORRELATION_KEY) if isinstance(metadata, dict) else None
        if not order_id or not str(order_id).strip():
            logger.error(
                "webhook_missing_order_id",
                event_id=event.id,
                session_id=event.data.object.get("id"),
            )
            raise MissingCorrelationError(
                f"Missing {CORRELATION_KEY} in session metadata for event {event.id}"
            )
        return str(order_id).strip()

    async def process_event(self, event: StripeEvent, db: AsyncSession) -> WebhookResult:
        """
        Apply a verified event.

        Args:
            event: Verified Stripe event
            db: Database session

        Returns:
            WebhookResult: Processing result to acknowledge

        Raises:
            MissingCorrelationError: If a completion event has no order id
        """
        if event.type != CHECKOUT_COMPLETED:
            logger.info("webhook_event_ignored", event_id=event.id, event_type=event.type)
            return WebhookResult(status="ignored", event_id=event.id, event_type=event.type)

        order_id = self.extract_order_id(event)

        try:
            transitioned = await self.order_service.mark_paid(order_id, db)
        except OrderNotFoundError:
            logger.error("webhook_order_not_found", event_id=event.id, order_id=order_id)
            metrics.record_reconciliation_failure()
            return WebhookResult(
                status="order_not_found",
                event_id=event.id,
                event_type=event.type,
                order_id=order_id,
            )
        except Exception as e:
            # Acknowledged anyway; the order must be repaired from logs.
            logger.exception(
                "webhook_reconciliation_failed",
                event_id=event.id,
                order_id=order_id,
                error=str(e),
            )
            metrics.record_reconciliation_failure()
            await db.rollback()
            return WebhookResult(
                status="reconciliation_failed",
                event_id=event.id,
                event_type=event.type,
                order_id=order_id,
            )

        status = "processed" if transitioned else "already_paid"
        logger.info("webhook_event_processed", event_id=event.id, order_id=order_id, status=status)
        return WebhookResult(
            status=status, event_id=event.id, event_type=event.type, order_id=order_id
        )

    async def handle(
        self, payload: bytes, signature: Optional[str], db: AsyncSession
    ) -> WebhookResult:
        """
        Verify, filter, correlate and apply one webhook delivery.

        Raises:
            SignatureVerificationError: Authenticity check failed
            MissingCorrelationError: Completion event without an order id
        """
        start_time = time.time()
        try:
            event = self.verify_signature(payload, signature)
        except SignatureVerificationError:
            metrics.record_webhook_rejection("signature")
            raise

        try:
            result = await self.process_event(event, db)
        except MissingCorrelationError:
            metrics.record_webhook_rejection("missing_correlation")
            raise

        metrics.record_webhook_event(event.type, result.status, time.time() - start_time)
        return result
