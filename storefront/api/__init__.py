"""FastAPI application and routes."""
from .main import app
from .schemas import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    ProductResponse,
    SubscribeResponse,
    WebhookResponse,
)

__all__ = [
    "app",
    "CreateCheckoutSessionRequest",
    "CreateCheckoutSessionResponse",
    "ProductResponse",
    "SubscribeResponse",
    "WebhookResponse",
]
