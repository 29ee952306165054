"""Document store: find/insert/update/delete by equality filter.

Records are JSON-safe dicts. The store owns three keys on every record:
``_id`` (UUID string, kept if the caller supplies one), ``createdAt`` and
``updatedAt`` (ISO-8601 UTC). No transactions and no cross-document
atomicity: multi-step invariants (one registration per user and course)
are enforced above this layer with coursegate.db.locks.

Backends:
  InMemoryDocumentStore  -- tests and throwaway dev runs
  JsonFileDocumentStore  -- one JSON array per collection under DATA_DIR
  SqlDocumentStore       -- see sql_document_store.py (DATABASE_URL)
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from coursegate.db.locks import InMemoryKeyedLock

logger = logging.getLogger(__name__)

COLLECTIONS: tuple[str, ...] = (
    "users",
    "courses",
    "materials",
    "registrations",
    "payments",
)

Document = dict[str, Any]


@runtime_checkable
class DocumentStore(Protocol):
    async def find(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> list[Document]: ...

    async def find_one(
        self, collection: str, filter: dict[str, Any]
    ) -> Document | None: ...

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None: ...

    async def insert_one(self, collection: str, doc: Document) -> Document: ...

    async def update_one(
        self, collection: str, filter: dict[str, Any], patch: dict[str, Any]
    ) -> Document | None: ...

    async def delete_one(self, collection: str, filter: dict[str, Any]) -> bool: ...


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"unknown collection {collection!r}")


def matches(doc: Document, filter: dict[str, Any] | None) -> bool:
    if not filter:
        return True
    return all(doc.get(key) == value for key, value in filter.items())


def stamp_new(doc: Document) -> Document:
    """Copy ``doc`` and add _id/createdAt/updatedAt."""
    ts = now_iso()
    stamped = copy.deepcopy(doc)
    stamped["_id"] = doc.get("_id") or str(uuid4())
    stamped["createdAt"] = ts
    stamped["updatedAt"] = ts
    return stamped


def apply_patch(doc: Document, patch: dict[str, Any]) -> Document:
    updated = {**doc, **copy.deepcopy(patch)}
    # identity and creation time are not patchable
    updated["_id"] = doc["_id"]
    updated["createdAt"] = doc["createdAt"]
    updated["updatedAt"] = now_iso()
    return updated


class InMemoryDocumentStore:
    """Dict-of-lists store. Every public method copies in and out so callers
    can never mutate stored state by accident.

    Methods do not await internally, so each one runs to completion without
    interleaving on the event loop.
    """

    def __init__(self) -> None:
        self._collections: dict[str, list[Document]] = {}

    def _data(self, collection: str) -> list[Document]:
        check_collection(collection)
        return self._collections.setdefault(collection, [])

    async def find(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> list[Document]:
        return [copy.deepcopy(d) for d in self._data(collection) if matches(d, filter)]

    async def find_one(self, collection: str, filter: dict[str, Any]) -> Document | None:
        for doc in self._data(collection):
            if matches(doc, filter):
                return copy.deepcopy(doc)
        return None

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        return await self.find_one(collection, {"_id": doc_id})

    async def insert_one(self, collection: str, doc: Document) -> Document:
        data = self._data(collection)
        stamped = stamp_new(doc)
        if any(d["_id"] == stamped["_id"] for d in data):
            raise ValueError(f"duplicate _id {stamped['_id']!r} in {collection}")
        data.append(stamped)
        return copy.deepcopy(stamped)

    async def update_one(
        self, collection: str, filter: dict[str, Any], patch: dict[str, Any]
    ) -> Document | None:
        data = self._data(collection)
        for i, doc in enumerate(data):
            if matches(doc, filter):
                data[i] = apply_patch(doc, patch)
                return copy.deepcopy(data[i])
        return None

    async def delete_one(self, collection: str, filter: dict[str, Any]) -> bool:
        data = self._data(collection)
        for i, doc in enumerate(data):
            if matches(doc, filter):
                del data[i]
                return True
        return False


class JsonFileDocumentStore:
    """One ``<collection>.json`` array per collection under ``data_dir``.

    Each write re-reads the file, applies the change and replaces the file
    atomically (temp file + os.replace), under a per-collection lock so two
    concurrent writers to the same collection cannot lose each other's
    changes. Readers never see a half-written file.
    """

    def __init__(self, data_dir: str | os.PathLike[str]) -> None:
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._write_locks = InMemoryKeyedLock()
        for name in COLLECTIONS:
            path = self._path(name)
            if not path.exists():
                path.write_text("[]", encoding="utf-8")

    def _path(self, collection: str) -> Path:
        return self._dir / f"{collection}.json"

    def _read_sync(self, collection: str) -> list[Document]:
        raw = self._path(collection).read_text(encoding="utf-8")
        data = json.loads(raw) if raw.strip() else []
        if not isinstance(data, list):
            raise ValueError(f"{collection}.json does not hold a JSON array")
        return data

    def _write_sync(self, collection: str, data: list[Document]) -> None:
        fd, tmp = tempfile.mkstemp(
            dir=self._dir, prefix=f".{collection}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self._path(collection))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    async def _read(self, collection: str) -> list[Document]:
        check_collection(collection)
        return await asyncio.to_thread(self._read_sync, collection)

    async def _write(self, collection: str, data: list[Document]) -> None:
        await asyncio.to_thread(self._write_sync, collection, data)

    async def find(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> list[Document]:
        return [d for d in await self._read(collection) if matches(d, filter)]

    async def find_one(self, collection: str, filter: dict[str, Any]) -> Document | None:
        for doc in await self._read(collection):
            if matches(doc, filter):
                return doc
        return None

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        return await self.find_one(collection, {"_id": doc_id})

    async def insert_one(self, collection: str, doc: Document) -> Document:
        check_collection(collection)
        async with self._write_locks.hold(collection):
            data = await self._read(collection)
            stamped = stamp_new(doc)
            if any(d.get("_id") == stamped["_id"] for d in data):
                raise ValueError(f"duplicate _id {stamped['_id']!r} in {collection}")
            data.append(stamped)
            await self._write(collection, data)
        return copy.deepcopy(stamped)

    async def update_one(
        self, collection: str, filter: dict[str, Any], patch: dict[str, Any]
    ) -> Document | None:
        check_collection(collection)
        async with self._write_locks.hold(collection):
            data = await self._read(collection)
            for i, doc in enumerate(data):
                if matches(doc, filter):
                    data[i] = apply_patch(doc, patch)
                    await self._write(collection, data)
                    return copy.deepcopy(data[i])
        return None

    async def delete_one(self, collection: str, filter: dict[str, Any]) -> bool:
        check_collection(collection)
        async with self._write_locks.hold(collection):
            data = await self._read(collection)
            for i, doc in enumerate(data):
                if matches(doc, filter):
                    del data[i]
                    await self._write(collection, data)
                    return True
        return False
