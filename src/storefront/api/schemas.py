"""Pydantic request/response schemas for the Storefront API."""

from datetime import datetime

from pydantic import BaseModel, Field

from storefront.lookup.client import StockView


class CheckStockRequest(BaseModel):
    catalog_item_id: str
    external_product_id: str
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    session_id: str | None = Field(default=None, max_length=128)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "catalog_item_id": "item-001",
                    "external_product_id": "zara-443322",
                    "latitude": 40.7233,
                    "longitude": -74.0030,
                    "session_id": "b7c1e0d4",
                }
            ]
        }
    }


class StoreAvailabilitySchema(BaseModel):
    store_id: str
    store_name: str
    store_address: str | None = None
    distance: float | None = None
    in_stock: bool
    checked_at: datetime


class StockViewResponse(BaseModel):
    status: str  # available, unverified, superseded
    message: str | None = None
    in_stock_nearby: bool
    stores: list[StoreAvailabilitySchema]

    @classmethod
    def from_view(cls, view: StockView) -> "StockViewResponse":
        return cls(
            status=view.status.value,
            message=view.message,
            in_stock_nearby=view.in_stock_nearby,
            stores=[
                StoreAvailabilitySchema(
                    store_id=result.store_id,
                    store_name=result.store_name,
                    store_address=result.store_address,
                    distance=result.distance,
                    in_stock=result.in_stock,
                    checked_at=result.checked_at,
                )
                for result in view.results
            ],
        )
