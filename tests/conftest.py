"""
Pytest configuration and fixtures.

Settings are read from the environment on first use, so test values are
set before any storefront module is imported.
"""
import hashlib
import hmac
import itertools
import json
import os
import time
from typing import Any, AsyncGenerator, Dict, Optional
from unittest.mock import AsyncMock

os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_storefront_fake_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_storefront_secret")
os.environ.setdefault("ADMIN_UIDS", "admin-uid")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from storefront.api import dependencies
from storefront.api.main import app
from storefront.core.admin import AdminService
from storefront.core.exceptions import AuthenticationError
from storefront.core.newsletter import WelcomeNotifier
from storefront.core.orders import OrderService
from storefront.database.connection import get_db
from storefront.database.models import Base
from storefront.integrations.firebase_auth import FirebaseIdentityProvider, IdentitySummary
from storefront.integrations.mailer import SmtpTransport
from storefront.integrations.stripe_client import CheckoutSession, StripeClient
from storefront.integrations.webhook_handler import WebhookHandler

WEBHOOK_SECRET = "whsec_test_storefront_secret"

ADMIN_TOKEN = "admin-token"
USER_TOKEN = "user-token"
TOKENS = {ADMIN_TOKEN: "admin-uid", USER_TOKEN: "user-1"}


def sign_payload(
    payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None
) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook deliveries."""
    ts = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(
        secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={ts},v1={signature}"


def completed_event(
    order_id: Optional[str], event_id: str = "evt_test_1", session_id: str = "cs_test_1"
) -> str:
    """Serialized ``checkout.session.completed`` event for an order."""
    metadata: Dict[str, Any] = {} if order_id is None else {"orderId": order_id}
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": "checkout.session.completed",
            "data": {"object": {"id": session_id, "object": "checkout.session", "metadata": metadata}},
        }
    )


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], Any]:
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, Any]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_stripe_client() -> AsyncMock:
    """Stripe client returning a fresh checkout session per call."""
    counter = itertools.count(1)

    async def create_session(**kwargs: Any) -> CheckoutSession:
        n = next(counter)
        return CheckoutSession(id=f"cs_test_{n}", url=f"https://checkout.stripe.com/c/pay/cs_test_{n}")

    client = AsyncMock(spec=StripeClient)
    client.create_checkout_session.side_effect = create_session
    return client


@pytest.fixture
def mock_identity_provider() -> AsyncMock:
    """Identity provider that knows ``ADMIN_TOKEN`` and ``USER_TOKEN``."""

    async def verify(token: str) -> str:
        if token not in TOKENS:
            raise AuthenticationError("Invalid token: unknown")
        return TOKENS[token]

    provider = AsyncMock(spec=FirebaseIdentityProvider)
    provider.verify_token.side_effect = verify
    provider.list_identities.return_value = [
        IdentitySummary(
            uid="admin-uid",
            email="admin@example.com",
            display_name="Admin",
            creation_time=None,
            last_sign_in_time=None,
        ),
        IdentitySummary(
            uid="user-1",
            email="asha@example.com",
            display_name="Asha Rao",
            creation_time=None,
            last_sign_in_time=None,
        ),
    ]
    return provider


@pytest.fixture
def mock_transport() -> AsyncMock:
    return AsyncMock(spec=SmtpTransport)


@pytest.fixture
def order_service(mock_stripe_client: AsyncMock) -> OrderService:
    return OrderService(stripe_client=mock_stripe_client)


@pytest.fixture
def webhook_handler(order_service: OrderService) -> WebhookHandler:
    return WebhookHandler(order_service=order_service, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def admin_service(mock_identity_provider: AsyncMock) -> AdminService:
    return AdminService(identity_provider=mock_identity_provider, admin_uids={"admin-uid"})


@pytest.fixture
def welcome_notifier(mock_transport: AsyncMock) -> WelcomeNotifier:
    return WelcomeNotifier(transport=mock_transport)


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    order_service: OrderService,
    webhook_handler: WebhookHandler,
    admin_service: AdminService,
    welcome_notifier: WelcomeNotifier,
    mock_identity_provider: AsyncMock,
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client wired to the in-memory database and mocks."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, Any]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_order_service] = lambda: order_service
    app.dependency_overrides[dependencies.get_webhook_handler] = lambda: webhook_handler
    app.dependency_overrides[dependencies.get_admin_service] = lambda: admin_service
    app.dependency_overrides[dependencies.get_welcome_notifier] = lambda: welcome_notifier
    app.dependency_overrides[dependencies.get_identity_provider] = lambda: mock_identity_provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_checkout_data() -> Dict[str, Any]:
    """Two-line cart worth 2200.00."""
    return {
        "items": [
            {"productId": "p1", "name": "Merino Scarf", "price": 500, "quantity": 2, "imageUrl": ""},
            {"productId": "p2", "name": "Cable Knit Hat", "price": 1200, "quantity": 1},
        ],
        "customerInfo": {
            "name": "Asha Rao",
            "email": "asha@example.com",
            "phone": "+91 98765 43210",
            "address": "12 MG Road",
            "city": "Bengaluru",
            "state": "KA",
            "zip": "560001",
        },
    }


@pytest.fixture
def sample_product_data() -> Dict[str, Any]:
    return {
        "name": "Merino Scarf",
        "description": "Soft merino wool scarf",
        "price": "500.00",
        "imageUrl": "https://example.com/scarf.jpg",
        "category": "scarves",
        "sizes": "S, M, L",
        "colors": ["Red", "Blue"],
        "isFeatured": True,
    }
