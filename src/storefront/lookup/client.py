"""Consumer-facing stock lookup with last-request-wins supersession.

Lookups are keyed by (catalog item, location rounded to 4 decimals, shopper
session). Starting a lookup for a key that already has one in flight cancels
the older task and its caller gets ``LookupSuperseded``. Each lookup also
takes a sequence number that is checked again once the provider answers, so a
response that slipped through the cancellation is still dropped. Sequence
numbers are never reused and a key's entry goes away with its last lookup.

Nothing is cached: every call asks the provider.
"""

import asyncio
import itertools
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

import structlog

from shared.provider.port import InventoryProvider, ProviderError, ProviderTimeout, StoreStock

logger = structlog.get_logger(__name__)

DEFAULT_FALLBACK_LOCATION = (40.7580, -73.9855)
UNVERIFIED_MESSAGE = "Could not verify stock"

LookupKey = tuple[str, float, float, str | None]

_FOUR_PLACES = Decimal("0.0001")


def _round_coordinate(value: float) -> float:
    return float(Decimal(str(value)).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP))


def lookup_key(
    catalog_item_id: str, latitude: float, longitude: float, session_id: str | None = None
) -> LookupKey:
    """Lookups only supersede each other within one shopper session."""
    return (str(catalog_item_id), _round_coordinate(latitude), _round_coordinate(longitude), session_id)


class LookupSuperseded(Exception):
    """A newer lookup for the same product, location and session replaced this one."""

    def __init__(self, key: LookupKey):
        self.key = key
        super().__init__(f"Stock lookup for {key[0]} at ({key[1]}, {key[2]}) was superseded")


@dataclass(frozen=True)
class AvailabilityResult:
    """Availability of the looked-up product at one store."""

    store_id: str
    store_name: str
    in_stock: bool
    checked_at: datetime
    store_address: str | None = None
    distance: float | None = None

    @classmethod
    def from_store_stock(cls, stock: StoreStock) -> "AvailabilityResult":
        return cls(
            store_id=stock.store_id,
            store_name=stock.store_name,
            in_stock=stock.in_stock,
            checked_at=stock.last_checked,
            store_address=stock.store_address,
            distance=stock.distance,
        )


class StockStatus(Enum):
    AVAILABLE = "available"
    UNVERIFIED = "unverified"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class StockView:
    """What a product page shows for a lookup."""

    status: StockStatus
    results: list[AvailabilityResult] = field(default_factory=list)
    message: str | None = None

    @property
    def in_stock_nearby(self) -> bool:
        return any(result.in_stock for result in self.results)


def rank_by_distance(results: Iterable[AvailabilityResult]) -> list[AvailabilityResult]:
    """Nearest first; stores without a distance keep their order at the end."""
    return sorted(results, key=lambda result: (result.distance is None, result.distance or 0.0))


def find_store(results: Iterable[AvailabilityResult], store_id: str) -> AvailabilityResult | None:
    return next((result for result in results if result.store_id == store_id), None)


@dataclass
class _InFlight:
    sequence: int
    task: asyncio.Task
    superseded: bool = False


class StockLookupClient:
    """Turn product + location queries into ranked store availability.

    One client serves many shoppers; pass a ``session_id`` so that only a
    shopper's own newer lookup supersedes an older one.
    """

    def __init__(
        self,
        provider: InventoryProvider,
        lookup_timeout: float = 12.0,
        fallback_location: tuple[float, float] = DEFAULT_FALLBACK_LOCATION,
    ) -> None:
        self._provider = provider
        self._lookup_timeout = lookup_timeout
        self._fallback_location = fallback_location
        self._counter = itertools.count(1)
        # Latest sequence per key, kept only while a lookup for the key is running
        self._sequences: dict[LookupKey, int] = {}
        self._in_flight: dict[LookupKey, _InFlight] = {}

    @property
    def in_flight(self) -> list[LookupKey]:
        return list(self._in_flight)

    def _key(
        self, catalog_item_id: str, latitude: float | None, longitude: float | None, session_id: str | None
    ) -> tuple[LookupKey, float, float]:
        if latitude is None or longitude is None:
            latitude, longitude = self._fallback_location
        return lookup_key(catalog_item_id, latitude, longitude, session_id), latitude, longitude

    async def check_availability(
        self,
        catalog_item_id: str,
        external_product_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        session_id: str | None = None,
    ) -> list[AvailabilityResult]:
        """Nearby availability, nearest store first.

        Raises:
            LookupSuperseded: a newer lookup for the same key started.
            NetworkError, ProviderTimeout, ServiceError: the provider failed.
        """
        key, latitude, longitude = self._key(catalog_item_id, latitude, longitude, session_id)
        sequence = next(self._counter)
        self._sequences[key] = sequence

        previous = self._in_flight.get(key)
        if previous is not None:
            previous.superseded = True
            previous.task.cancel()
            logger.debug("Superseding stock lookup", catalog_item_id=key[0], sequence=previous.sequence)

        task = asyncio.create_task(self._query(catalog_item_id, external_product_id, latitude, longitude))
        token = _InFlight(sequence=sequence, task=task)
        self._in_flight[key] = token

        try:
            stores = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if token.superseded and not (current and current.cancelling()):
                raise LookupSuperseded(key) from None
            raise
        else:
            if self._sequences.get(key) != sequence:
                raise LookupSuperseded(key)
        finally:
            if self._in_flight.get(key) is token:
                del self._in_flight[key]
            if self._sequences.get(key) == sequence:
                del self._sequences[key]

        return rank_by_distance(AvailabilityResult.from_store_stock(store) for store in stores)

    async def check_for_display(
        self,
        catalog_item_id: str,
        external_product_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        session_id: str | None = None,
    ) -> StockView:
        """Like check_availability, but provider failures become an unverified view."""
        try:
            results = await self.check_availability(
                catalog_item_id, external_product_id, latitude, longitude, session_id=session_id
            )
        except LookupSuperseded:
            return StockView(status=StockStatus.SUPERSEDED)
        except ProviderError as exc:
            logger.warning("Stock lookup failed", catalog_item_id=catalog_item_id, error=str(exc))
            return StockView(status=StockStatus.UNVERIFIED, message=UNVERIFIED_MESSAGE)
        return StockView(status=StockStatus.AVAILABLE, results=results)

    def cancel(
        self,
        catalog_item_id: str,
        latitude: float | None = None,
        longitude: float | None = None,
        session_id: str | None = None,
    ) -> bool:
        """Cancel the in-flight lookup for a key; True if one was running."""
        key, _, _ = self._key(catalog_item_id, latitude, longitude, session_id)
        token = self._in_flight.pop(key, None)
        if token is None:
            return False
        token.task.cancel()
        return True

    def cancel_all(self) -> int:
        tokens = list(self._in_flight.values())
        self._in_flight.clear()
        for token in tokens:
            token.task.cancel()
        return len(tokens)

    async def _query(
        self,
        catalog_item_id: str,
        external_product_id: str,
        latitude: float,
        longitude: float,
    ) -> list[StoreStock]:
        try:
            async with asyncio.timeout(self._lookup_timeout):
                answer = await self._provider.check_nearby_stock(
                    catalog_item_id, external_product_id, latitude, longitude
                )
        except TimeoutError as exc:
            raise ProviderTimeout(f"Stock lookup exceeded {self._lookup_timeout}s") from exc
        return answer.stores
