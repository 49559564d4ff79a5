"""Accounts domain API package."""

from accounts.api.routes import address_router, payment_method_router

__all__ = ["address_router", "payment_method_router"]
