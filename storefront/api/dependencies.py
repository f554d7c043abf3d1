"""
FastAPI dependency providers.

Services are built once per process; tests swap them through
``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Header

from storefront.core.admin import AdminService
from storefront.core.catalog import CatalogService
from storefront.core.newsletter import NewsletterService, WelcomeNotifier
from storefront.core.orders import OrderService
from storefront.integrations.firebase_auth import FirebaseIdentityProvider
from storefront.integrations.webhook_handler import WebhookHandler
from storefront.monitoring.health import HealthCheck


@lru_cache()
def get_identity_provider() -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider()


@lru_cache()
def get_order_service() -> OrderService:
    return OrderService()


@lru_cache()
def get_webhook_handler() -> WebhookHandler:
    return WebhookHandler(order_service=get_order_service())


@lru_cache()
def get_admin_service() -> AdminService:
    return AdminService(identity_provider=get_identity_provider())


@lru_cache()
def get_catalog_service() -> CatalogService:
    return CatalogService()


@lru_cache()
def get_newsletter_service() -> NewsletterService:
    return NewsletterService()


@lru_cache()
def get_welcome_notifier() -> WelcomeNotifier:
    return WelcomeNotifier()


@lru_cache()
def get_health_check() -> HealthCheck:
    return HealthCheck()


def bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None
