"""
Newsletter subscriptions and the welcome email they trigger.

A new subscriber gets exactly one welcome email. Delivery runs after the
subscription is committed and can never undo it.
"""
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.core.exceptions import NotificationError
from storefront.database.models import Subscriber
from storefront.integrations.mailer import SmtpTransport, compose_message
from storefront.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

WELCOME_TEMPLATE = """
<h1>Welcome!</h1>
<p>Hi there,</p>
<p>Thank you for subscribing to the {store} newsletter. We're so happy to have you with us.</p>
<p>You'll now be the first to know about new arrivals, special collections, and exclusive offers.</p>
<p>Happy knitting!</p>
<br>
<p>Warmly,</p>
<p>The {store} Team</p>
"""


@dataclass(frozen=True)
class SubscriptionResult:
    subscriber: Subscriber
    created: bool


class NewsletterService:
    """Creates subscriber records; one record per email address."""

    async def subscribe(self, email: str, db: AsyncSession) -> SubscriptionResult:
        """
        Subscribe an email address.

        Args:
            email: Address to subscribe (normalized to lowercase)
            db: Database session

        Returns:
            SubscriptionResult: The subscriber and whether it was newly created
        """
        normalized = email.strip().lower()

        existing = await db.scalar(select(Subscriber).where(Subscriber.email == normalized))
        if existing is not None:
            metrics.record_newsletter_signup("existing")
            logger.info("newsletter_already_subscribed", subscriber_id=existing.id)
            return SubscriptionResult(subscriber=existing, created=False)

        subscriber = Subscriber(email=normalized)
        db.add(subscriber)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with a concurrent signup for the same address
            await db.rollback()
            existing = await db.scalar(select(Subscriber).where(Subscriber.email == normalized))
            if existing is None:
                raise
            metrics.record_newsletter_signup("existing")
            return SubscriptionResult(subscriber=existing, created=False)

        metrics.record_newsletter_signup("created")
        logger.info("newsletter_subscribed", subscriber_id=subscriber.id)
        return SubscriptionResult(subscriber=subscriber, created=True)


class WelcomeNotifier:
    """Sends the one-shot welcome email for a new subscriber."""

    def __init__(self, transport: Optional[SmtpTransport] = None):
        self.settings = get_settings()
        self.transport = transport or SmtpTransport()

    async def send_welcome(self, email: Optional[str]) -> bool:
        """
        Send the welcome email.

        Never raises: failures are logged and counted, not retried.

        Returns:
            bool: True if the message was handed to the transport
        """
        if not email:
            logger.info("welcome_email_skipped", reason="missing_email")
            metrics.record_welcome_email("skipped")
            return False

        message = compose_message(
            sender=self.settings.email_from,
            to=email,
            subject=f"Welcome to the {self.settings.store_name} Family!",
            html=WELCOME_TEMPLATE.format(store=self.settings.store_name),
        )

        try:
            await self.transport.send(message)
        except NotificationError as e:
            logger.error("welcome_email_failed", to=email, error=str(e))
            metrics.record_welcome_email("failed")
            return False

        logger.info("welcome_email_sent", to=email)
        metrics.record_welcome_email("sent")
        return True
