"""Store inventory reconciliation sweep.

One sweep pulls the provider's stock for every catalog SKU belonging to a
store's brand and writes the flags back in chunks. The sweep:

1. resolves the store's external id and brand tag (no network call without them)
2. takes the store's sync lease
3. selects the brand's SKUs (untagged items are always included)
4. asks the provider for their stock (a failure here writes nothing)
5. matches returned SKUs to catalog items, first match wins
6. commits ``in_stock`` + ``last_synced_at`` in sequential chunks

A failed chunk is reported per SKU and the sweep moves on to the next one;
committed chunks stay committed.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ObjectNotFoundError

from inventory.catalog.item import CATALOG, CatalogItem, catalog_item_path, stock_fields
from inventory.catalog.store import RetailStore, store_path
from inventory.sync.lease import SyncLease
from shared.documents.mapping import from_document
from shared.documents.port import DocumentStore, DocumentStoreError
from shared.provider.port import InventoryProvider, ProviderError

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 450


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class PreconditionError(Exception):
    """The store is not set up for reconciliation."""

    def __init__(self, store_id: str, message: str):
        self.store_id = store_id
        super().__init__(message)


class MissingExternalId(PreconditionError):
    def __init__(self, store_id: str):
        super().__init__(store_id, f"Store {store_id} has no external store id")


class MissingBrandTag(PreconditionError):
    def __init__(self, store_id: str):
        super().__init__(store_id, f"Store {store_id} has no brand name to derive a brand tag from")


class PartialSyncFailure(Exception):
    """Some chunks of a sweep failed to commit."""

    def __init__(self, report: "SyncReport"):
        self.report = report
        failed = sum(1 for result in report.results if result.status is SkuStatus.FAILED)
        super().__init__(
            f"Sync of store {report.store_id} left {failed} SKUs unwritten in {report.failed_chunks} chunks"
        )


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------
class SkuStatus(Enum):
    UPDATED = "updated"
    FAILED = "failed"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class SkuResult:
    sku: str
    status: SkuStatus
    in_stock: bool | None = None
    item_id: str | None = None
    error: str | None = None


@dataclass
class SyncReport:
    """Outcome of one reconciliation sweep."""

    store_id: str
    started_at: datetime
    finished_at: datetime | None = None
    updated_count: int = 0
    results: list[SkuResult] = field(default_factory=list)
    failed_chunks: int = 0

    @property
    def partial(self) -> bool:
        return self.failed_chunks > 0

    def raise_for_failures(self) -> None:
        if self.partial:
            raise PartialSyncFailure(self)

    def by_status(self, status: SkuStatus) -> list[SkuResult]:
        return [result for result in self.results if result.status is status]


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------
class InventoryReconciler:
    """Reconcile a store's catalog stock flags with the external provider."""

    def __init__(
        self,
        store: DocumentStore,
        provider: InventoryProvider,
        lease: SyncLease | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._store = store
        self._provider = provider
        self._lease = lease or SyncLease(store)
        self._batch_size = batch_size
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def chunk_size(self) -> int:
        return min(self._batch_size, self._store.max_batch_size)

    async def sync(self, store_id: str) -> SyncReport:
        retail_store = await self._load_store(store_id)
        if not retail_store.external_store_id:
            raise MissingExternalId(store_id)
        brand_tag = retail_store.brand_tag
        if not brand_tag:
            raise MissingBrandTag(store_id)

        async with self._lease.hold(store_id):
            return await self._sweep(retail_store, brand_tag)

    async def _sweep(self, retail_store: RetailStore, brand_tag: str) -> SyncReport:
        store_id = str(retail_store.id)
        started_at = self._clock()
        report = SyncReport(store_id=store_id, started_at=started_at)

        items = [
            from_document(CatalogItem, snapshot) for snapshot in await self._store.list_collection(CATALOG)
        ]
        items = [item for item in items if item.belongs_to(brand_tag)]
        skus = [item.sku for item in items]

        logger.info(
            "Starting inventory sync",
            store_id=store_id,
            brand_tag=brand_tag,
            sku_count=len(skus),
        )

        try:
            stock = await self._provider.check_store_stock(retail_store.external_store_id, skus)
        except ProviderError as exc:
            logger.error("Inventory provider failed, nothing written", store_id=store_id, error=str(exc))
            raise

        by_sku: dict[str, CatalogItem] = {}
        for item in items:
            by_sku.setdefault(item.sku, item)

        # item id -> (sku, in_stock); a later answer for the same item wins
        pending: dict[str, tuple[str, bool]] = {}
        for answer in stock:
            item = by_sku.get(answer.sku)
            if item is None:
                report.results.append(SkuResult(sku=answer.sku, status=SkuStatus.UNMATCHED))
                continue
            pending[str(item.id)] = (answer.sku, answer.in_stock)

        writes = list(pending.items())
        chunk_size = self.chunk_size
        for number, start in enumerate(range(0, len(writes), chunk_size), start=1):
            await self._commit_chunk(report, number, writes[start : start + chunk_size], started_at)

        report.finished_at = self._clock()
        logger.info(
            "Inventory sync finished",
            store_id=store_id,
            updated=report.updated_count,
            unmatched=len(report.by_status(SkuStatus.UNMATCHED)),
            failed_chunks=report.failed_chunks,
        )
        return report

    async def _commit_chunk(
        self,
        report: SyncReport,
        number: int,
        chunk: list[tuple[str, tuple[str, bool]]],
        synced_at: datetime,
    ) -> None:
        batch = self._store.batch()
        for item_id, (_, in_stock) in chunk:
            batch.update(catalog_item_path(item_id), stock_fields(in_stock, synced_at))

        try:
            await self._store.commit(batch)
        except DocumentStoreError as exc:
            report.failed_chunks += 1
            report.results.extend(
                SkuResult(sku=sku, status=SkuStatus.FAILED, in_stock=in_stock, item_id=item_id, error=str(exc))
                for item_id, (sku, in_stock) in chunk
            )
            logger.warning(
                "Sync chunk failed",
                store_id=report.store_id,
                chunk=number,
                size=len(chunk),
                error=str(exc),
            )
            return

        report.updated_count += len(chunk)
        report.results.extend(
            SkuResult(sku=sku, status=SkuStatus.UPDATED, in_stock=in_stock, item_id=item_id)
            for item_id, (sku, in_stock) in chunk
        )
        logger.debug("Sync chunk committed", store_id=report.store_id, chunk=number, size=len(chunk))

    async def _load_store(self, store_id: str) -> RetailStore:
        snapshot = await self._store.get(store_path(store_id))
        if not snapshot.exists:
            raise ObjectNotFoundError(f"Store with identifier {store_id} does not exist")
        return from_document(RetailStore, snapshot)
