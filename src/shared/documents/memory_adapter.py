"""In-memory document store for development and testing.

Commits are serialized by an asyncio lock and validated against the state
before the batch, so a failing precondition leaves nothing applied. Revisions
come from one store-wide counter bumped on every commit.

The store can be configured at runtime to fail given commit attempts, which
makes partial-failure paths reproducible in tests (like a fake gateway).
"""

import asyncio
import copy
from collections.abc import Iterable

from shared.documents.port import (
    DocumentNotFound,
    DocumentStore,
    DocumentStoreError,
    Snapshot,
    WriteBatch,
    WriteConflict,
    WriteKind,
    collection_of,
)


class InMemoryDocumentStore(DocumentStore):
    """Configurable in-memory document store."""

    def __init__(self, max_batch_size: int = 500) -> None:
        super().__init__(max_batch_size)
        self._documents: dict[str, tuple[dict, int]] = {}
        self._revision = 0
        self._lock = asyncio.Lock()
        self._failing_attempts: set[int] = set()
        self._failing_collection: str | None = None
        self._matched_attempts = 0
        self.failure_reason: str = "Commit rejected by document store"
        self.commit_attempts: int = 0
        self.calls: list[dict] = []

    def configure(
        self,
        fail_commit_attempts: Iterable[int] = (),
        failure_reason: str | None = None,
        collection: str | None = None,
    ) -> None:
        """Make the given commit attempts fail.

        Attempts are 1-based and counted from this call on. With ``collection``
        only batches writing into that collection are counted.
        """
        self._failing_attempts = set(fail_commit_attempts)
        self._failing_collection = collection
        self._matched_attempts = 0
        if failure_reason:
            self.failure_reason = failure_reason

    async def get(self, path: str) -> Snapshot:
        stored = self._documents.get(path)
        if stored is None:
            return Snapshot(path=path)
        data, revision = stored
        return Snapshot(path=path, data=copy.deepcopy(data), revision=revision)

    async def list_collection(self, collection: str) -> list[Snapshot]:
        return [
            Snapshot(path=path, data=copy.deepcopy(data), revision=revision)
            for path, (data, revision) in sorted(self._documents.items())
            if collection_of(path) == collection
        ]

    async def _apply(self, batch: WriteBatch) -> None:
        async with self._lock:
            self.commit_attempts += 1
            attempt = self.commit_attempts
            self.calls.append({"method": "commit", "attempt": attempt, "size": len(batch), "paths": batch.paths})

            if self._counts_towards_failures(batch):
                self._matched_attempts += 1
                if self._matched_attempts in self._failing_attempts:
                    raise DocumentStoreError(self.failure_reason)

            for write in batch:
                if write.expected_revision is None:
                    continue
                stored = self._documents.get(write.path)
                actual = stored[1] if stored else 0
                if actual != write.expected_revision:
                    raise WriteConflict(write.path, write.expected_revision, actual)

            staged = dict(self._documents)
            revision = self._revision + 1
            for write in batch:
                if write.kind is WriteKind.SET:
                    staged[write.path] = (copy.deepcopy(write.data), revision)
                elif write.kind is WriteKind.UPDATE:
                    if write.path not in staged:
                        raise DocumentNotFound(write.path)
                    merged = {**staged[write.path][0], **copy.deepcopy(write.data)}
                    staged[write.path] = (merged, revision)
                elif write.kind is WriteKind.DELETE:
                    staged.pop(write.path, None)

            self._documents = staged
            self._revision = revision

    def _counts_towards_failures(self, batch: WriteBatch) -> bool:
        if self._failing_collection is None:
            return True
        return any(collection_of(path) == self._failing_collection for path in batch.paths)
