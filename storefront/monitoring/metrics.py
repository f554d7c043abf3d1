"""
Prometheus metrics for storefront monitoring.

Tracks:
- Checkout session outcomes and order totals
- Stripe API calls and errors
- Webhook events and reconciliation failures
- Newsletter signups and welcome email delivery
"""
from prometheus_client import Counter, Histogram

# Checkout metrics
checkout_sessions_total = Counter(
    "checkout_sessions_total",
    "Total checkout session attempts",
    ["outcome"],  # created, invalid_cart, payment_error
)

order_total_amount = Histogram(
    "order_total_amount",
    "Order totals in major currency units",
    buckets=(100, 250, 500, 1000, 2500, 5000, 10000, 25000, 50000),
)

# Stripe API metrics
stripe_api_requests_total = Counter(
    "stripe_api_requests_total",
    "Total Stripe API requests",
    ["operation", "status"],
)

stripe_api_errors_total = Counter(
    "stripe_api_errors_total",
    "Total Stripe API errors",
    ["error_type"],  # transient, permanent, rate_limit
)

stripe_api_duration_seconds = Histogram(
    "stripe_api_duration_seconds",
    "Stripe API call duration in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0, 7.5, 10.0),
)

# Webhook metrics
webhook_events_received_total = Counter(
    "webhook_events_received_total",
    "Total webhook events received",
    ["event_type"],
)

webhook_events_processed_total = Counter(
    "webhook_events_processed_total",
    "Total webhook events processed",
    ["event_type", "status"],  # processed, already_paid, ignored, order_not_found, ...
)

webhook_rejections_total = Counter(
    "webhook_rejections_total",
    "Webhook requests rejected before processing",
    ["reason"],  # signature, missing_correlation
)

webhook_reconciliation_failures_total = Counter(
    "webhook_reconciliation_failures_total",
    "Verified payments whose order could not be marked paid",
)

webhook_processing_duration_seconds = Histogram(
    "webhook_processing_duration_seconds",
    "Webhook processing duration in seconds",
    ["event_type"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Newsletter metrics
newsletter_signups_total = Counter(
    "newsletter_signups_total",
    "Newsletter signup requests",
    ["result"],  # created, existing
)

welcome_emails_total = Counter(
    "welcome_emails_total",
    "Welcome emails by delivery outcome",
    ["outcome"],  # sent, failed, skipped
)


class MetricsCollector:
    """Helper class for collecting metrics."""

    @staticmethod
    def record_checkout(outcome: str) -> None:
        """Record a checkout session attempt."""
        checkout_sessions_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_order_total(total: float) -> None:
        order_total_amount.observe(total)

    @staticmethod
    def record_stripe_api_call(
        operation: str, status: str, duration_seconds: float
    ) -> None:
        """Record Stripe API call."""
        stripe_api_requests_total.labels(operation=operation, status=status).inc()
        stripe_api_duration_seconds.labels(operation=operation).observe(duration_seconds)

    @staticmethod
    def record_stripe_api_error(error_type: str) -> None:
        """Record Stripe API error."""
        stripe_api_errors_total.labels(error_type=error_type).inc()

    @staticmethod
    def record_webhook_event(event_type: str, status: str, duration_seconds: float) -> None:
        """Record webhook event processing."""
        webhook_events_received_total.labels(event_type=event_type).inc()
        webhook_events_processed_total.labels(event_type=event_type, status=status).inc()
        webhook_processing_duration_seconds.labels(event_type=event_type).observe(
            duration_seconds
        )

    @staticmethod
    def record_webhook_rejection(reason: str) -> None:
        webhook_rejections_total.labels(reason=reason).inc()

    @staticmethod
    def record_reconciliation_failure() -> None:
        webhook_reconciliation_failures_total.inc()

    @staticmethod
    def record_newsletter_signup(result: str) -> None:
        newsletter_signups_total.labels(result=result).inc()

    @staticmethod
    def record_welcome_email(outcome: str) -> None:
        welcome_emails_total.labels(outcome=outcome).inc()


# Export singleton instance
metrics = MetricsCollector()
