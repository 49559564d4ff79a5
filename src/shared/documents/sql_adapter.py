"""SQL-backed document store built on SQLAlchemy Core.

Each document is one row holding its JSON body and a revision counter.
Deleted documents stay behind as tombstones so their revision keeps growing
and a delete-then-recreate never reuses an old revision. A batch is one
database transaction; blocking calls run in a worker thread.
"""

import asyncio
import json
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from shared.documents.port import (
    DocumentNotFound,
    DocumentStore,
    DocumentStoreError,
    Snapshot,
    Write,
    WriteBatch,
    WriteConflict,
    WriteKind,
    collection_of,
)

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("path", String(512), primary_key=True),
    Column("collection", String(512), nullable=False, index=True),
    Column("body", Text, nullable=True),
    Column("revision", Integer, nullable=False, default=1),
    Column("deleted", Boolean, nullable=False, default=False),
)

_DATETIME_KEY = "$datetime"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATETIME_KEY: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode(obj: dict) -> Any:
    if set(obj) == {_DATETIME_KEY}:
        return datetime.fromisoformat(obj[_DATETIME_KEY])
    return obj


def dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, default=_encode, sort_keys=True)


def loads(body: str) -> dict[str, Any]:
    return json.loads(body, object_hook=_decode)


class SqlDocumentStore(DocumentStore):
    """Document store persisted through a SQLAlchemy engine."""

    def __init__(self, url: str, max_batch_size: int = 500, engine: Engine | None = None) -> None:
        super().__init__(max_batch_size)
        if engine is None:
            if url in ("sqlite://", "sqlite:///:memory:"):
                engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
            elif url.startswith("sqlite"):
                engine = create_engine(url, connect_args={"check_same_thread": False})
            else:
                engine = create_engine(url)
        self._engine = engine
        metadata.create_all(self._engine)

    async def get(self, path: str) -> Snapshot:
        return await asyncio.to_thread(self._get, path)

    async def list_collection(self, collection: str) -> list[Snapshot]:
        return await asyncio.to_thread(self._list, collection)

    async def _apply(self, batch: WriteBatch) -> None:
        await asyncio.to_thread(self._commit, batch.writes)

    async def close(self) -> None:
        await asyncio.to_thread(self._engine.dispose)

    # -------------------------------------------------------------------
    # Blocking helpers
    # -------------------------------------------------------------------
    def _get(self, path: str) -> Snapshot:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(select(documents).where(documents.c.path == path)).first()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(str(exc)) from exc

        if row is None or row.deleted:
            return Snapshot(path=path)
        return Snapshot(path=path, data=loads(row.body), revision=row.revision)

    def _list(self, collection: str) -> list[Snapshot]:
        query = (
            select(documents)
            .where(documents.c.collection == collection, documents.c.deleted.is_(False))
            .order_by(documents.c.path)
        )
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as exc:
            raise DocumentStoreError(str(exc)) from exc

        return [Snapshot(path=row.path, data=loads(row.body), revision=row.revision) for row in rows]

    def _commit(self, writes: list[Write]) -> None:
        try:
            with self._engine.begin() as conn:
                rows = {write.path: self._locked_row(conn, write.path) for write in writes}

                for write in writes:
                    if write.expected_revision is None:
                        continue
                    row = rows[write.path]
                    actual = row.revision if row is not None and not row.deleted else 0
                    if actual != write.expected_revision:
                        raise WriteConflict(write.path, write.expected_revision, actual)

                for write in writes:
                    if write.kind is not WriteKind.CHECK:
                        self._write(conn, write)
        except SQLAlchemyError as exc:
            raise DocumentStoreError(str(exc)) from exc

    def _locked_row(self, conn: Connection, path: str):
        query = select(documents).where(documents.c.path == path).with_for_update()
        return conn.execute(query).first()

    def _write(self, conn: Connection, write: Write) -> None:
        row = conn.execute(select(documents).where(documents.c.path == write.path)).first()
        exists = row is not None and not row.deleted

        if write.kind is WriteKind.UPDATE:
            if not exists:
                raise DocumentNotFound(write.path)
            body = dumps({**loads(row.body), **write.data})
        elif write.kind is WriteKind.DELETE:
            if not exists:
                return
            body = None
        else:
            body = dumps(write.data)

        deleted = write.kind is WriteKind.DELETE
        if row is None:
            try:
                conn.execute(
                    insert(documents).values(
                        path=write.path,
                        collection=collection_of(write.path),
                        body=body,
                        revision=1,
                        deleted=deleted,
                    )
                )
            except IntegrityError as exc:
                # another transaction created the same path first
                raise WriteConflict(write.path, 0, 1) from exc
        else:
            conn.execute(
                update(documents)
                .where(documents.c.path == write.path)
                .values(body=body, revision=row.revision + 1, deleted=deleted)
            )
