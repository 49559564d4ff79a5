"""Configurable fake inventory provider for development and testing.

Holds canned availability in memory and can be told at runtime to fail with
any provider error or to answer slowly, which makes timeouts and request
supersession reproducible without a network.
"""

import asyncio
from datetime import UTC, datetime

from shared.provider.port import (
    InventoryProvider,
    NearbyStock,
    NetworkError,
    ProviderTimeout,
    ServiceError,
    SkuStock,
    StoreStock,
)

_FAILURES = {
    "network": NetworkError,
    "timeout": ProviderTimeout,
    "service": ServiceError,
}


class FakeInventoryProvider(InventoryProvider):
    """Configurable fake inventory provider."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_kind: str = "service"
        self.failure_reason: str = "Inventory provider unavailable"
        self.delay: float = 0.0
        self._queued_delays: list[float] = []
        self._nearby: dict[str, list[StoreStock]] = {}
        self._store_inventory: dict[str, dict[str, bool]] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_kind: str = "service",
        failure_reason: str = "Inventory provider unavailable",
        delay: float = 0.0,
    ) -> None:
        """Configure provider behavior at runtime."""
        if failure_kind not in _FAILURES:
            raise ValueError(f"Unknown failure kind: {failure_kind}")
        self.should_succeed = should_succeed
        self.failure_kind = failure_kind
        self.failure_reason = failure_reason
        self.delay = delay

    def queue_delays(self, *delays: float) -> None:
        """Give the next calls their own response delays, in call order."""
        self._queued_delays.extend(delays)

    def stock_nearby(self, external_product_id: str, stores: list[StoreStock]) -> None:
        self._nearby[external_product_id] = list(stores)

    def stock_store(self, external_store_id: str, inventory: dict[str, bool]) -> None:
        self._store_inventory[external_store_id] = dict(inventory)

    async def check_nearby_stock(
        self,
        product_id: str,
        external_product_id: str,
        latitude: float,
        longitude: float,
    ) -> NearbyStock:
        self.calls.append(
            {
                "method": "check_nearby_stock",
                "product_id": product_id,
                "external_product_id": external_product_id,
                "latitude": latitude,
                "longitude": longitude,
            }
        )
        await self._respond()
        return NearbyStock(stores=list(self._nearby.get(external_product_id, [])))

    async def check_store_stock(self, external_store_id: str, skus: list[str]) -> list[SkuStock]:
        self.calls.append(
            {
                "method": "check_store_stock",
                "external_store_id": external_store_id,
                "skus": list(skus),
            }
        )
        await self._respond()
        inventory = self._store_inventory.get(external_store_id, {})
        return [SkuStock(sku=sku, in_stock=inventory[sku]) for sku in skus if sku in inventory]

    async def _respond(self) -> None:
        delay = self._queued_delays.pop(0) if self._queued_delays else self.delay
        if delay:
            await asyncio.sleep(delay)
        if not self.should_succeed:
            raise _FAILURES[self.failure_kind](self.failure_reason)


def store_stock(store_id: str, store_name: str, in_stock: bool, distance: float | None = None, **kwargs) -> StoreStock:
    """Shorthand for building canned nearby-store answers."""
    return StoreStock(
        store_id=store_id,
        store_name=store_name,
        in_stock=in_stock,
        distance=distance,
        last_checked=kwargs.pop("last_checked", datetime.now(UTC)),
        **kwargs,
    )
