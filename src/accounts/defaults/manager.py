"""At-most-one-default enforcement for owner-scoped sibling sets.

A sibling kind is a collection of documents under ``users/{owner}/{kind}``
that share a default flag (saved addresses, payment methods). Each owner has
a set marker per kind at ``users/{owner}/sibling_sets/{kind}`` recording the
current default id.

Every operation reads the marker and the siblings, then commits one batch
that:
- rewrites the marker, conditioned on the revision that was read
- pins the revision of every sibling document it touches

Two operations computed from the same read cannot both commit. The loser
gets ``WriteConflict`` and the set stays exactly as the winner left it.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError

from shared.documents.mapping import from_document, revised, to_document
from shared.documents.port import DocumentStore, Snapshot, Subscription, WriteBatch, document_path

logger = structlog.get_logger(__name__)

USERS = "users"
SIBLING_SETS = "sibling_sets"

_EPOCH = datetime.min.replace(tzinfo=UTC)


@dataclass(frozen=True)
class SiblingKind:
    """A named sibling collection and the aggregate stored in it.

    With ``promote_on_delete`` deleting the default hands the flag to the
    earliest-created remaining sibling; otherwise the set is left without a
    default.
    """

    name: str
    model: type
    promote_on_delete: bool = False

    def collection(self, owner_id: str) -> str:
        return document_path(USERS, str(owner_id), self.name)

    def path(self, owner_id: str, sibling_id: str) -> str:
        return document_path(USERS, str(owner_id), self.name, str(sibling_id))

    def marker_path(self, owner_id: str) -> str:
        return document_path(USERS, str(owner_id), SIBLING_SETS, self.name)


@dataclass(frozen=True)
class _SetState:
    marker: Snapshot
    siblings: list[Snapshot]

    @property
    def defaults(self) -> list[Snapshot]:
        return [snapshot for snapshot in self.siblings if snapshot.data.get("is_default")]

    def find(self, sibling_id: str) -> Snapshot | None:
        return next((snapshot for snapshot in self.siblings if snapshot.id == str(sibling_id)), None)


def _creation_order(entity) -> tuple:
    return (entity.created_at is None, entity.created_at or _EPOCH, str(entity.id))


class DefaultInvariantManager:
    """Add, edit, delete and pick the default among an owner's siblings."""

    def __init__(self, store: DocumentStore, kind: SiblingKind) -> None:
        self._store = store
        self.kind = kind

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    async def add(self, owner_id: str, sibling, is_default: bool | None = None):
        """Store a new sibling; as default it takes the flag from the others."""
        if is_default is not None:
            sibling.is_default = is_default
        sibling.owner_id = owner_id

        state = await self._read(owner_id)
        batch = self._store.batch()
        if sibling.is_default:
            self._clear_defaults(batch, state, keep=None)
            default_id = str(sibling.id)
        else:
            default_id = self._default_id(state)

        batch.create(self.kind.path(owner_id, sibling.id), to_document(sibling))
        await self._commit(batch, state, default_id)

        logger.info("Sibling added", kind=self.kind.name, owner_id=owner_id, sibling_id=str(sibling.id))
        return sibling

    async def update(self, owner_id: str, sibling):
        """Overwrite a stored sibling; as default it takes the flag from the others."""
        sibling.owner_id = owner_id
        state = await self._read(owner_id)
        target = self._require(state, sibling.id)
        return await self._overwrite(owner_id, state, target, sibling)

    async def edit(self, owner_id: str, sibling_id: str, **changes):
        """Apply ``changes`` to the stored sibling as read in this same call.

        The write is pinned to the revision that was read, so an edit that
        lands in between raises ``WriteConflict`` instead of being overwritten.
        """
        state = await self._read(owner_id)
        target = self._require(state, sibling_id)
        sibling = revised(self._load(target), **changes)
        sibling.owner_id = owner_id
        return await self._overwrite(owner_id, state, target, sibling)

    async def _overwrite(self, owner_id: str, state: _SetState, target: Snapshot, sibling):
        batch = self._store.batch()
        if sibling.is_default:
            self._clear_defaults(batch, state, keep=target.id)
            default_id = target.id
        else:
            current = self._default_id(state)
            default_id = None if current == target.id else current

        batch.set(target.path, to_document(sibling), expected_revision=target.revision)
        await self._commit(batch, state, default_id)

        logger.info("Sibling updated", kind=self.kind.name, owner_id=owner_id, sibling_id=target.id)
        return sibling

    async def set_default(self, owner_id: str, sibling_id: str):
        state = await self._read(owner_id)
        target = self._require(state, sibling_id)

        batch = self._store.batch()
        self._clear_defaults(batch, state, keep=target.id)
        batch.update(target.path, {"is_default": True}, expected_revision=target.revision)
        await self._commit(batch, state, target.id)

        logger.info("Default changed", kind=self.kind.name, owner_id=owner_id, sibling_id=target.id)
        return await self.get(owner_id, target.id)

    async def delete(self, owner_id: str, sibling_id: str) -> None:
        state = await self._read(owner_id)
        target = self._require(state, sibling_id)

        batch = self._store.batch()
        batch.delete(target.path, expected_revision=target.revision)

        default_id = self._default_id(state)
        if target.data.get("is_default"):
            default_id = None
            remaining = [snapshot for snapshot in state.siblings if snapshot.id != target.id]
            if self.kind.promote_on_delete and remaining:
                heir = min(remaining, key=lambda snapshot: _creation_order(self._load(snapshot)))
                batch.update(heir.path, {"is_default": True}, expected_revision=heir.revision)
                default_id = heir.id
                logger.info("Default promoted", kind=self.kind.name, owner_id=owner_id, sibling_id=default_id)

        await self._commit(batch, state, default_id)
        logger.info("Sibling deleted", kind=self.kind.name, owner_id=owner_id, sibling_id=target.id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    async def get(self, owner_id: str, sibling_id: str):
        snapshot = await self._store.get(self.kind.path(owner_id, sibling_id))
        if not snapshot.exists:
            raise ObjectNotFoundError(f"{self.kind.model.__name__} with identifier {sibling_id} does not exist")
        return self._load(snapshot)

    async def default_for(self, owner_id: str):
        return next((sibling for sibling in await self.list(owner_id) if sibling.is_default), None)

    async def watch(self, owner_id: str, callback: Callable[[list], None]) -> Subscription:
        """Call ``callback`` with the owner's siblings now and after every change."""

        def deliver(snapshots: list[Snapshot]) -> None:
            callback(self._ordered(snapshots))

        return await self._store.subscribe(self.kind.collection(owner_id), deliver)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _read(self, owner_id: str) -> _SetState:
        marker = await self._store.get(self.kind.marker_path(owner_id))
        siblings = await self._store.list_collection(self.kind.collection(owner_id))
        return _SetState(marker=marker, siblings=siblings)

    def _require(self, state: _SetState, sibling_id: str) -> Snapshot:
        target = state.find(sibling_id)
        if target is None:
            raise ObjectNotFoundError(f"{self.kind.model.__name__} with identifier {sibling_id} does not exist")
        return target

    @staticmethod
    def _clear_defaults(batch: WriteBatch, state: _SetState, keep: str | None) -> None:
        for snapshot in state.defaults:
            if snapshot.id != keep:
                batch.update(snapshot.path, {"is_default": False}, expected_revision=snapshot.revision)

    @staticmethod
    def _default_id(state: _SetState) -> str | None:
        defaults = state.defaults
        return defaults[0].id if defaults else None

    async def _commit(self, batch: WriteBatch, state: _SetState, default_id: str | None) -> None:
        batch.set(
            state.marker.path,
            {"kind": self.kind.name, "default_id": default_id},
            expected_revision=state.marker.revision,
        )
        await self._store.commit(batch)

    def _load(self, snapshot: Snapshot):
        return from_document(self.kind.model, snapshot)

    def _ordered(self, snapshots: list[Snapshot]) -> list:
        return sorted((self._load(snapshot) for snapshot in snapshots), key=_creation_order)

    async def list(self, owner_id: str) -> list:
        """The owner's siblings, oldest first."""
        return self._ordered(await self._store.list_collection(self.kind.collection(owner_id)))
