"""HTTP adapter for the external inventory provider.

Both provider paths are JSON-over-HTTPS POST endpoints. Responses are
validated with pydantic models before anything leaves this module, so callers
only ever see well-formed results or one of the provider errors.
"""

from datetime import datetime
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.provider.port import (
    InventoryProvider,
    NearbyStock,
    NetworkError,
    ProviderTimeout,
    ServiceError,
    SkuStock,
    StoreStock,
)

logger = structlog.get_logger(__name__)

STOCK_CHECK_PATH = "/checkStock"
STORE_INVENTORY_PATH = "/storeInventory"


# ---------------------------------------------------------------------------
# Wire payloads
# ---------------------------------------------------------------------------
class _StoreAvailabilityPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    store_id: str = Field(alias="storeId")
    store_name: str = Field(alias="storeName")
    store_address: str | None = Field(default=None, alias="storeAddress")
    in_stock: bool = Field(alias="inStock")
    distance: float | None = None
    last_checked: datetime = Field(alias="lastChecked")

    @field_validator("store_id", mode="before")
    @classmethod
    def _numeric_ids_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


class _NearbyStockPayload(BaseModel):
    success: bool
    cached: bool = False
    stores: list[_StoreAvailabilityPayload] = []
    error: str | None = None


class _SkuStockPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str
    in_stock: bool = Field(alias="inStock")


class _StoreInventoryPayload(BaseModel):
    success: bool
    inventory: list[_SkuStockPayload] = []
    error: str | None = None


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------
class HttpInventoryProvider(InventoryProvider):
    """Inventory provider reached over HTTP with httpx."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def check_nearby_stock(
        self,
        product_id: str,
        external_product_id: str,
        latitude: float,
        longitude: float,
    ) -> NearbyStock:
        body = await self._post(
            STOCK_CHECK_PATH,
            {
                "productId": product_id,
                "externalProductId": external_product_id,
                "latitude": latitude,
                "longitude": longitude,
            },
        )
        payload = self._validate(_NearbyStockPayload, body)
        if not payload.success:
            raise ServiceError(payload.error or "Stock check reported failure")

        return NearbyStock(
            cached=payload.cached,
            stores=[
                StoreStock(
                    store_id=store.store_id,
                    store_name=store.store_name,
                    store_address=store.store_address,
                    in_stock=store.in_stock,
                    distance=store.distance,
                    last_checked=store.last_checked,
                )
                for store in payload.stores
            ],
        )

    async def check_store_stock(self, external_store_id: str, skus: list[str]) -> list[SkuStock]:
        body = await self._post(
            STORE_INVENTORY_PATH,
            {"externalStoreId": external_store_id, "skus": list(skus)},
        )
        payload = self._validate(_StoreInventoryPayload, body)
        if not payload.success:
            raise ServiceError(payload.error or "Store inventory check reported failure")

        return [SkuStock(sku=entry.sku, in_stock=entry.in_stock) for entry in payload.inventory]

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Inventory provider timed out", path=path)
            raise ProviderTimeout(f"Inventory provider timed out on {path}") from exc
        except httpx.RequestError as exc:
            logger.warning("Inventory provider unreachable", path=path, error=str(exc))
            raise NetworkError(f"Inventory provider unreachable: {exc}") from exc

        if response.status_code != 200:
            logger.warning("Inventory provider returned an error", path=path, status_code=response.status_code)
            raise ServiceError(
                f"Inventory provider returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise ServiceError("Inventory provider returned a non-JSON body", status_code=200) from exc

    @staticmethod
    def _validate(model: type[BaseModel], body: Any):
        try:
            return model.model_validate(body)
        except ValidationError as exc:
            raise ServiceError(f"Malformed inventory provider response: {exc.error_count()} errors") from exc
