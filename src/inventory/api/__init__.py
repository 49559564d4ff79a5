"""Inventory domain API package."""

from inventory.api.routes import store_router

__all__ = ["store_router"]
