"""Exception hierarchy for storefront operations."""


class StorefrontError(Exception):
    """Base exception for storefront errors."""

    pass


class InvalidCartError(StorefrontError):
    """Raised when a cart is empty or carries an invalid line."""

    pass


class InvalidProductError(StorefrontError):
    """Raised when product data fails validation."""

    pass


class PaymentSessionError(StorefrontError):
    """Raised when the payment processor cannot open a checkout session."""

    def __init__(self, message: str, order_id: str | None = None):
        super().__init__(message)
        self.order_id = order_id


class SignatureVerificationError(StorefrontError):
    """Raised when a webhook payload fails authenticity checks."""

    pass


class MissingCorrelationError(StorefrontError):
    """Raised when a completion event carries no order id in its metadata."""

    pass


class OrderNotFoundError(StorefrontError):
    """Raised when an order id does not match any stored order."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class ProductNotFoundError(StorefrontError):
    """Raised when a product id does not match any stored product."""

    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class AuthenticationError(StorefrontError):
    """Raised when an identity token cannot be verified."""

    pass


class AuthorizationError(StorefrontError):
    """Raised when a caller is not permitted to perform an operation."""

    pass


class IdentityListingError(StorefrontError):
    """Raised when the identity provider fails to list identities."""

    pass


class NotificationError(StorefrontError):
    """Raised when an outbound email cannot be delivered."""

    pass
