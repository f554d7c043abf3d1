"""
Pydantic schemas for API request/response models.

Wire names follow the storefront frontend (camelCase); Python attributes are
snake_case and mapped with aliases.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from storefront.core.cart import CartItem
from storefront.core.catalog import normalize_options


class CamelModel(BaseModel):
    """Accepts and emits camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class CheckoutItem(CamelModel):
    """One cart line as submitted by the client."""

    product_id: Optional[str] = Field(default=None, alias="productId", description="Catalog id")
    name: str = Field(..., min_length=1, description="Product name shown on the payment page")
    price: Decimal = Field(..., description="Unit price in major currency units")
    quantity: int = Field(..., description="Quantity (positive integer)")
    image_url: Optional[str] = Field(default=None, alias="imageUrl", description="Product image")

    @field_validator("quantity", mode="before")
    @classmethod
    def reject_fractional_quantity(cls, v: Any) -> Any:
        """Quantities are whole units; booleans and floats are rejected."""
        if isinstance(v, bool) or (isinstance(v, float) and not v.is_integer()):
            raise ValueError("quantity must be a whole integer unit")
        return v

    def to_cart_item(self) -> CartItem:
        return CartItem(
            product_id=self.product_id or "",
            name=self.name,
            unit_price=self.price,
            quantity=self.quantity,
            image_url=self.image_url or "",
        )


class CustomerInfo(CamelModel):
    """Contact and shipping details entered at checkout."""

    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class CreateCheckoutSessionRequest(CamelModel):
    """Request schema for starting checkout."""

    items: List[CheckoutItem] = Field(..., description="Cart lines (non-empty)")
    customer_info: CustomerInfo = Field(..., alias="customerInfo")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "items": [
                        {"name": "Merino Scarf", "price": 500, "quantity": 2, "imageUrl": ""},
                        {"name": "Cable Knit Hat", "price": 1200, "quantity": 1, "imageUrl": ""},
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
            ]
        },
    )


class CreateCheckoutSessionResponse(CamelModel):
    session_id: str = Field(..., alias="sessionId", description="Stripe Checkout session id")


class WebhookResponse(CamelModel):
    """Acknowledgment returned to Stripe."""

    received: bool = True
    status: str = Field(..., description="Processing status")
    event_id: str = Field(..., alias="eventId", description="Stripe event ID")
    order_id: Optional[str] = Field(default=None, alias="orderId")


class IdentitySummaryResponse(CamelModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    creation_time: Optional[datetime] = Field(default=None, alias="creationTime")
    last_sign_in_time: Optional[datetime] = Field(default=None, alias="lastSignInTime")


class OrderResponse(CamelModel):
    id: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    customer_info: dict = Field(..., alias="customerInfo")
    items: List[dict]
    total: Decimal
    currency: str
    status: str
    created_at: datetime = Field(..., alias="createdAt")
    paid_at: Optional[datetime] = Field(default=None, alias="paidAt")


class ProductInput(CamelModel):
    """Admin product form payload."""

    name: str = Field(..., min_length=1)
    description: str = ""
    price: Decimal = Field(..., ge=0)
    image_url: str = Field(default="", alias="imageUrl")
    category: str = Field(..., min_length=1)
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    is_featured: bool = Field(default=False, alias="isFeatured")

    @field_validator("sizes", "colors", mode="before")
    @classmethod
    def split_options(cls, v: Any) -> List[str]:
        """Accept a comma-separated string or a list; drop blanks and duplicates."""
        return normalize_options(v)


class ProductResponse(CamelModel):
    id: str
    name: str
    description: str
    price: Decimal
    image_url: str = Field(..., alias="imageUrl")
    category: str
    sizes: List[str]
    colors: List[str]
    is_featured: bool = Field(..., alias="isFeatured")
    created_at: datetime = Field(..., alias="createdAt")


class FacetsResponse(BaseModel):
    sizes: List[str]
    colors: List[str]


class SubscribeRequest(BaseModel):
    email: EmailStr


class SubscribeResponse(CamelModel):
    email: str
    subscribed_at: datetime = Field(..., alias="subscribedAt")
    created: bool


class HealthCheckResponse(BaseModel):
    """Response schema for health checks."""

    status: str = Field(..., description="Overall health status (healthy/degraded/unhealthy)")
    checks: Optional[dict] = Field(default=None, description="Individual service checks")
    message: Optional[str] = Field(default=None, description="Status message")
