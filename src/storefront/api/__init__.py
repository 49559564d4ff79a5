"""Storefront API package."""

from storefront.api.routes import stock_router

__all__ = ["stock_router"]
