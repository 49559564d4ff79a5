"""Document store port (abstract interface).

Defines the contract every document store adapter implements: point reads,
collection listings, atomic write batches with per-document revision
preconditions, and live collection subscriptions. Components receive a
DocumentStore instance from the composition root; nothing reaches for a
module-level client.

Documents are addressed by slash-separated paths whose last segment is the
document id (``users/u-1/addresses/a-1``). Everything before the last segment
is the collection path (``users/u-1/addresses``).
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class DocumentStoreError(Exception):
    """A read or commit could not be completed. Prior state is unchanged."""


class WriteConflict(DocumentStoreError):
    """A revision precondition did not hold at commit time."""

    def __init__(self, path: str, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"Revision conflict on {path}: expected {expected}, found {actual}")


class DocumentNotFound(DocumentStoreError):
    """A field update targeted a document that does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Document {path} does not exist")


class BatchLimitExceeded(DocumentStoreError):
    """A batch carries more writes than the store accepts in one transaction."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch of {size} writes exceeds the limit of {limit}")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def document_path(*segments: str) -> str:
    """Join path segments, rejecting empty ones."""
    parts = [str(segment) for segment in segments]
    if not parts or any(not part or "/" in part for part in parts):
        raise ValueError(f"Invalid document path segments: {segments!r}")
    return "/".join(parts)


def collection_of(path: str) -> str:
    collection, _, _ = path.rpartition("/")
    return collection


# ---------------------------------------------------------------------------
# Snapshots and batches
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Snapshot:
    """A document as read at one revision. ``data`` is None when it does not exist."""

    path: str
    data: dict[str, Any] | None = None
    revision: int = 0

    @property
    def id(self) -> str:
        return self.path.rpartition("/")[2]

    @property
    def exists(self) -> bool:
        return self.data is not None


class WriteKind(Enum):
    SET = "set"
    UPDATE = "update"
    DELETE = "delete"
    CHECK = "check"


@dataclass(frozen=True)
class Write:
    kind: WriteKind
    path: str
    data: dict[str, Any] | None = None
    expected_revision: int | None = None


class WriteBatch:
    """An ordered list of writes committed all-or-nothing.

    ``expected_revision`` pins the revision a document must have at commit
    time; 0 means the document must not exist. ``check`` adds a precondition
    without writing, and does not count towards the batch size.
    """

    def __init__(self) -> None:
        self._writes: list[Write] = []

    def set(self, path: str, data: dict[str, Any], *, expected_revision: int | None = None) -> "WriteBatch":
        self._writes.append(Write(WriteKind.SET, path, copy.deepcopy(data), expected_revision))
        return self

    def create(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        return self.set(path, data, expected_revision=0)

    def update(self, path: str, fields: dict[str, Any], *, expected_revision: int | None = None) -> "WriteBatch":
        self._writes.append(Write(WriteKind.UPDATE, path, copy.deepcopy(fields), expected_revision))
        return self

    def delete(self, path: str, *, expected_revision: int | None = None) -> "WriteBatch":
        self._writes.append(Write(WriteKind.DELETE, path, None, expected_revision))
        return self

    def check(self, path: str, expected_revision: int) -> "WriteBatch":
        self._writes.append(Write(WriteKind.CHECK, path, None, expected_revision))
        return self

    @property
    def writes(self) -> list[Write]:
        return list(self._writes)

    @property
    def paths(self) -> list[str]:
        return [write.path for write in self._writes if write.kind is not WriteKind.CHECK]

    def __len__(self) -> int:
        return sum(1 for write in self._writes if write.kind is not WriteKind.CHECK)

    def __iter__(self) -> Iterator[Write]:
        return iter(self._writes)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------
SnapshotListener = Callable[[list[Snapshot]], None]


class Subscription:
    """Handle for a live collection listener. Call ``unsubscribe()`` to stop it."""

    def __init__(self, collection: str, listener: SnapshotListener, on_cancel: Callable[["Subscription"], None]):
        self.collection = collection
        self._listener = listener
        self._on_cancel = on_cancel
        self.active = True

    def deliver(self, snapshots: list[Snapshot]) -> None:
        if self.active:
            self._listener(snapshots)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._on_cancel(self)


# ---------------------------------------------------------------------------
# Port
# ---------------------------------------------------------------------------
class DocumentStore(ABC):
    """Abstract document store interface."""

    def __init__(self, max_batch_size: int = 500) -> None:
        self.max_batch_size = max_batch_size
        self._subscriptions: dict[str, list[Subscription]] = {}

    @abstractmethod
    async def get(self, path: str) -> Snapshot:
        """Read one document. Missing documents come back with ``data=None``."""
        ...

    @abstractmethod
    async def list_collection(self, collection: str) -> list[Snapshot]:
        """Read every document directly inside a collection, ordered by id."""
        ...

    @abstractmethod
    async def _apply(self, batch: WriteBatch) -> None:
        """Atomically validate and apply a batch."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    def batch(self) -> WriteBatch:
        return WriteBatch()

    async def commit(self, batch: WriteBatch) -> None:
        """Commit a batch all-or-nothing, then notify collection listeners."""
        if len(batch) > self.max_batch_size:
            raise BatchLimitExceeded(len(batch), self.max_batch_size)
        if not len(batch):
            return

        await self._apply(batch)
        await self._publish({collection_of(path) for path in batch.paths})

    async def set(self, path: str, data: dict[str, Any]) -> None:
        await self.commit(self.batch().set(path, data))

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        await self.commit(self.batch().update(path, fields))

    async def delete(self, path: str) -> None:
        await self.commit(self.batch().delete(path))

    async def subscribe(self, collection: str, listener: SnapshotListener) -> Subscription:
        """Register a listener and deliver the current collection contents to it."""
        subscription = Subscription(collection, listener, self._remove_subscription)
        self._subscriptions.setdefault(collection, []).append(subscription)
        subscription.deliver(await self.list_collection(collection))
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        listeners = self._subscriptions.get(subscription.collection, [])
        if subscription in listeners:
            listeners.remove(subscription)
        if not listeners:
            self._subscriptions.pop(subscription.collection, None)

    async def _publish(self, collections: Iterable[str]) -> None:
        """Notify listeners of changed collections. The batch is already committed."""
        for collection in sorted(collections):
            listeners = list(self._subscriptions.get(collection, []))
            if not listeners:
                continue

            try:
                snapshots = await self.list_collection(collection)
            except DocumentStoreError:
                logger.exception("Listener refresh failed after commit", collection=collection)
                continue

            for subscription in listeners:
                try:
                    subscription.deliver(snapshots)
                except Exception:
                    logger.exception("Snapshot listener failed", collection=collection)
