"""Inventory provider factory.

build_provider() picks the adapter from settings:
- FakeInventoryProvider for development and testing (the default)
- HttpInventoryProvider for the real provider service
"""

from shared.provider.fake_adapter import FakeInventoryProvider
from shared.provider.http_adapter import HttpInventoryProvider
from shared.provider.port import InventoryProvider
from shared.settings import Settings


def build_provider(settings: Settings) -> InventoryProvider:
    """Return the inventory provider selected by ``settings.inventory_provider``."""
    if settings.inventory_provider == "http":
        return HttpInventoryProvider(settings.provider_base_url, timeout=settings.provider_timeout)
    if settings.inventory_provider == "fake":
        return FakeInventoryProvider()
    raise ValueError(f"Unknown inventory provider: {settings.inventory_provider}")
