"""Mapping between Protean domain objects and stored documents.

The document id lives in the path, so ``id`` is left out of the body and
restored from the snapshot on the way back.
"""

from typing import Any

from protean.utils.reflection import declared_fields

from shared.documents.port import Snapshot


def _persisted_fields(cls) -> list[str]:
    return [name for name in declared_fields(cls) if name != "id" and not name.startswith("_")]


def to_document(entity) -> dict[str, Any]:
    return {name: getattr(entity, name) for name in _persisted_fields(type(entity))}


def from_document(cls, snapshot: Snapshot):
    fields = set(_persisted_fields(cls))
    values = {name: value for name, value in (snapshot.data or {}).items() if name in fields}
    return cls(id=snapshot.id, **values)


def revised(entity, **changes):
    """A copy of ``entity`` with ``changes`` applied, validated as a new object."""
    values = {**to_document(entity), **changes}
    return type(entity)(id=entity.id, **values)
