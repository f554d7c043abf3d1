"""Database package for the storefront service."""
from .connection import close_db, get_db, get_session_factory, init_db
from .models import (
    ORDER_STATUS_PAID,
    ORDER_STATUS_PENDING,
    Base,
    Order,
    Product,
    Subscriber,
)

__all__ = [
    "Base",
    "Order",
    "Product",
    "Subscriber",
    "ORDER_STATUS_PAID",
    "ORDER_STATUS_PENDING",
    "close_db",
    "get_db",
    "get_session_factory",
    "init_db",
]
