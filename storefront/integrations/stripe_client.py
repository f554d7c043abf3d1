"""
Stripe API client for hosted Checkout sessions.

Implements:
- Checkout session creation with order metadata
- Stripe error classification
- Non-blocking calls (the SDK is synchronous and runs in the default executor)

Calls are made exactly once. A failure is classified, logged and raised to
the caller; retrying is left to the customer.
"""
import asyncio
import functools
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import stripe
import structlog

from storefront.config import get_settings
from storefront.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class StripeErrorType(Enum):
    """Classification of Stripe errors."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    RATE_LIMIT = "rate_limit"


class StripeError(Exception):
    """Base exception for Stripe-related errors."""

    def __init__(
        self,
        message: str,
        error_type: StripeErrorType,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize Stripe error.

        Args:
            message: Error message
            error_type: Classification of error
            original_error: Original Stripe exception
        """
        super().__init__(message)
        self.error_type = error_type
        self.original_error = original_error


@dataclass(frozen=True)
class CheckoutSession:
    """The parts of a Stripe Checkout session the storefront uses."""

    id: str
    url: Optional[str] = None


class StripeClient:
    """
    Thin wrapper around the Stripe Checkout API.

    Features:
    - Hosted checkout session creation
    - Comprehensive error classification
    - Call timing and error metrics
    """

    def __init__(self) -> None:
        """Initialize Stripe client."""
        settings = get_settings()
        stripe.api_key = settings.stripe_secret_key
        stripe.api_version = settings.stripe_api_version
        self.settings = settings

        logger.info(
            "stripe_client_initialized",
            api_version=stripe.api_version,
            test_mode=settings.is_test_mode,
        )

    @staticmethod
    def _classify_error(error: stripe.StripeError) -> StripeErrorType:
        """
        Classify Stripe error.

        Args:
            error: Stripe error

        Returns:
            StripeErrorType: Error classification
        """
        if isinstance(error, stripe.RateLimitError):
            return StripeErrorType.RATE_LIMIT
        elif isinstance(error, (stripe.APIConnectionError, stripe.APIError)):
            return StripeErrorType.TRANSIENT
        elif isinstance(
            error,
            (
                stripe.CardError,
                stripe.InvalidRequestError,
                stripe.AuthenticationError,
                stripe.PermissionError,
            ),
        ):
            return StripeErrorType.PERMANENT
        else:
            # Unknown errors are treated as transient
            return StripeErrorType.TRANSIENT

    def _handle_stripe_error(self, operation: str, error: stripe.StripeError) -> None:
        """
        Handle and classify Stripe errors.

        Args:
            operation: Name of the Stripe operation that failed
            error: Stripe error

        Raises:
            StripeError: Classified error
        """
        error_type = self._classify_error(error)

        logger.error(
            "stripe_api_error",
            operation=operation,
            error_type=error_type.value,
            error_code=getattr(error, "code", None),
            error_message=str(error),
        )
        metrics.record_stripe_api_error(error_type.value)

        raise StripeError(
            message=str(error),
            error_type=error_type,
            original_error=error,
        ) from error

    async def create_checkout_session(
        self,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Create a hosted Stripe Checkout session in payment mode.

        Args:
            line_items: Stripe ``line_items`` with inline ``price_data``
            success_url: Redirect after successful payment
            cancel_url: Redirect when the customer abandons checkout
            metadata: Opaque key/value pairs echoed back in webhook events
            customer_email: Prefills the email field on the hosted page

        Returns:
            CheckoutSession: Created session id and hosted URL

        Raises:
            StripeError: If session creation fails
        """
        logger.info(
            "creating_checkout_session",
            line_item_count=len(line_items),
            metadata=metadata,
        )

        kwargs: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": line_items,
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata or {},
        }
        if customer_email:
            kwargs["customer_email"] = customer_email

        start_time = time.time()
        loop = asyncio.get_running_loop()
        try:
            session = await loop.run_in_executor(
                None, functools.partial(stripe.checkout.Session.create, **kwargs)
            )
        except stripe.StripeError as e:
            metrics.record_stripe_api_call(
                "create_checkout_session", "error", time.time() - start_time
            )
            self._handle_stripe_error("create_checkout_session", e)
            raise  # For type checker

        metrics.record_stripe_api_call(
            "create_checkout_session", "success", time.time() - start_time
        )
        logger.info("checkout_session_created", session_id=session.id)

        return CheckoutSession(id=session.id, url=getattr(session, "url", None))
