"""External integrations: Stripe, Firebase Authentication and SMTP."""
from .firebase_auth import FirebaseIdentityProvider, IdentitySummary
from .mailer import SmtpTransport
from .stripe_client import CheckoutSession, StripeClient, StripeError

__all__ = [
    "CheckoutSession",
    "FirebaseIdentityProvider",
    "IdentitySummary",
    "SmtpTransport",
    "StripeClient",
    "StripeError",
]
