"""FastAPI routes for the Inventory domain: store reconciliation."""

from fastapi import APIRouter, Request

from inventory.api.schemas import SyncReportResponse
from inventory.sync.reconciler import InventoryReconciler

store_router = APIRouter(prefix="/stores", tags=["stores"])


def get_reconciler(request: Request) -> InventoryReconciler:
    return request.app.state.reconciler


@store_router.post("/{store_id}/sync", response_model=SyncReportResponse)
async def sync_store(store_id: str, request: Request) -> SyncReportResponse:
    """Run one reconciliation sweep; failed chunks are reported, not raised."""
    report = await get_reconciler(request).sync(store_id)
    return SyncReportResponse.from_report(report)
