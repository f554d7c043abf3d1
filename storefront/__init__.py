"""Storefront service: catalog, cart, Stripe checkout and order reconciliation."""

__version__ = "1.0.0"
