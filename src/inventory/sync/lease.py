"""Per-store sync lease: a TTL-bound lock document that serializes sweeps.

The lease lives at ``sync_leases/{store_id}``. It is taken with a revision
precondition, so two sweeps racing for the same store cannot both win. A
lease whose holder crashed simply expires after its TTL and can be taken
over.
"""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import structlog

from shared.documents.port import DocumentStore, DocumentStoreError, WriteConflict, document_path

logger = structlog.get_logger(__name__)

SYNC_LEASES = "sync_leases"


class SyncInProgress(Exception):
    """Another sweep holds the store's lease."""

    def __init__(self, store_id: str, holder: str | None = None, expires_at: datetime | None = None):
        self.store_id = store_id
        self.holder = holder
        self.expires_at = expires_at
        super().__init__(f"A sync of store {store_id} is already in progress")


class SyncLease:
    """Acquire and release per-store sweep leases in a document store."""

    def __init__(
        self,
        store: DocumentStore,
        ttl: float = 300.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock or (lambda: datetime.now(UTC))

    @asynccontextmanager
    async def hold(self, store_id: str) -> AsyncIterator[str]:
        """Hold the lease for the duration of the block; yields the holder token."""
        holder = await self.acquire(store_id)
        try:
            yield holder
        finally:
            await self.release(store_id, holder)

    async def acquire(self, store_id: str) -> str:
        path = document_path(SYNC_LEASES, store_id)
        now = self._clock()
        current = await self._store.get(path)

        if current.exists and current.data["expires_at"] > now:
            raise SyncInProgress(store_id, current.data.get("holder"), current.data["expires_at"])

        holder = uuid4().hex
        batch = self._store.batch().set(
            path,
            {"holder": holder, "acquired_at": now, "expires_at": now + self._ttl},
            expected_revision=current.revision,
        )
        try:
            await self._store.commit(batch)
        except WriteConflict as exc:
            raise SyncInProgress(store_id) from exc

        if current.exists:
            logger.info("Took over expired sync lease", store_id=store_id, previous_holder=current.data.get("holder"))
        return holder

    async def release(self, store_id: str, holder: str) -> None:
        path = document_path(SYNC_LEASES, store_id)
        current = await self._store.get(path)
        if not current.exists or current.data.get("holder") != holder:
            logger.warning("Sync lease was taken over before release", store_id=store_id, holder=holder)
            return

        try:
            await self._store.commit(self._store.batch().delete(path, expected_revision=current.revision))
        except DocumentStoreError as exc:
            # the lease still expires on its own
            logger.warning("Could not release sync lease", store_id=store_id, error=str(exc))
