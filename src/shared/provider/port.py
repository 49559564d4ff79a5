"""External inventory provider port (abstract interface).

Defines the contract every inventory provider adapter implements. The
provider answers two questions:
- consumer path: which stores near a location carry a product right now
- admin path: which of a store's SKUs are in stock

Adapters raise the errors below; they never return partial garbage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ProviderError(Exception):
    """The provider could not answer."""


class NetworkError(ProviderError):
    """The provider was unreachable."""


class ProviderTimeout(NetworkError):
    """The provider did not answer before the deadline."""


class ServiceError(ProviderError):
    """The provider answered with a failure or a malformed body."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreStock:
    """Availability of one product at one nearby store."""

    store_id: str
    store_name: str
    in_stock: bool
    last_checked: datetime
    store_address: str | None = None
    distance: float | None = None


@dataclass(frozen=True)
class NearbyStock:
    """Consumer-path answer."""

    stores: list[StoreStock]
    cached: bool = False


@dataclass(frozen=True)
class SkuStock:
    """Admin-path answer for one SKU."""

    sku: str
    in_stock: bool


class InventoryProvider(ABC):
    """Abstract external inventory provider."""

    @abstractmethod
    async def check_nearby_stock(
        self,
        product_id: str,
        external_product_id: str,
        latitude: float,
        longitude: float,
    ) -> NearbyStock:
        """Report availability of a product at stores near a location."""
        ...

    @abstractmethod
    async def check_store_stock(self, external_store_id: str, skus: list[str]) -> list[SkuStock]:
        """Report current stock for a store's SKUs."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources."""
