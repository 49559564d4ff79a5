"""FastAPI routes for the Storefront: live stock checks for product pages."""

from uuid import uuid4

from fastapi import APIRouter, Request

from storefront.api.schemas import CheckStockRequest, StockViewResponse
from storefront.lookup.client import StockLookupClient

stock_router = APIRouter(prefix="/stock", tags=["stock"])


def get_stock_lookup(request: Request) -> StockLookupClient:
    return request.app.state.stock_lookup


@stock_router.post("/check", response_model=StockViewResponse)
async def check_stock(body: CheckStockRequest, request: Request) -> StockViewResponse:
    # Without a session the request can neither supersede nor be superseded
    session_id = body.session_id or uuid4().hex
    view = await get_stock_lookup(request).check_for_display(
        body.catalog_item_id,
        body.external_product_id,
        body.latitude,
        body.longitude,
        session_id=session_id,
    )
    return StockViewResponse.from_view(view)
