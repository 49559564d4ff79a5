"""Pydantic response schemas for the Inventory API."""

from datetime import datetime

from pydantic import BaseModel

from inventory.sync.reconciler import SyncReport


class SkuResultSchema(BaseModel):
    sku: str
    status: str  # updated, failed, unmatched
    in_stock: bool | None = None
    item_id: str | None = None
    error: str | None = None


class SyncReportResponse(BaseModel):
    store_id: str
    started_at: datetime
    finished_at: datetime | None = None
    updated_count: int
    failed_chunks: int
    partial: bool
    results: list[SkuResultSchema]

    @classmethod
    def from_report(cls, report: SyncReport) -> "SyncReportResponse":
        return cls(
            store_id=report.store_id,
            started_at=report.started_at,
            finished_at=report.finished_at,
            updated_count=report.updated_count,
            failed_chunks=report.failed_chunks,
            partial=report.partial,
            results=[
                SkuResultSchema(
                    sku=result.sku,
                    status=result.status.value,
                    in_stock=result.in_stock,
                    item_id=result.item_id,
                    error=result.error,
                )
                for result in report.results
            ],
        )
