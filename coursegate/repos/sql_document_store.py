"""SQL implementation of DocumentStore (SQLAlchemy async).

Satisfies the same Protocol as the in-memory and JSON-file stores, on top
of the single ``documents`` table. Filters are evaluated in Python after
loading the collection's rows, which keeps the filter semantics identical
across backends.
"""

from __future__ import annotations

import copy
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coursegate.db.tables import DocumentRow
from coursegate.repos.document_store import (
    Document,
    apply_patch,
    check_collection,
    matches,
    stamp_new,
)


class SqlDocumentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _rows(
        self, session: AsyncSession, collection: str, *, for_update: bool = False
    ) -> list[DocumentRow]:
        stmt = select(DocumentRow).where(DocumentRow.collection == collection)
        if for_update:
            # Row locks make the filter check and the write one step on Postgres.
            stmt = stmt.with_for_update()
        return list((await session.execute(stmt)).scalars())

    async def find(
        self, collection: str, filter: dict[str, Any] | None = None
    ) -> list[Document]:
        check_collection(collection)
        async with self._session_factory() as session:
            rows = await self._rows(session, collection)
        docs = [copy.deepcopy(r.body) for r in rows if matches(r.body, filter)]
        docs.sort(key=lambda d: d.get("createdAt", ""))
        return docs

    async def find_one(self, collection: str, filter: dict[str, Any]) -> Document | None:
        if set(filter) == {"_id"}:
            return await self.find_by_id(collection, filter["_id"])
        found = await self.find(collection, filter)
        return found[0] if found else None

    async def find_by_id(self, collection: str, doc_id: str) -> Document | None:
        check_collection(collection)
        async with self._session_factory() as session:
            row = await session.get(DocumentRow, (collection, doc_id))
            return copy.deepcopy(row.body) if row is not None else None

    async def insert_one(self, collection: str, doc: Document) -> Document:
        check_collection(collection)
        stamped = stamp_new(doc)
        async with self._session_factory() as session:
            async with session.begin():
                session.add(
                    DocumentRow(collection=collection, id=stamped["_id"], body=stamped)
                )
        return copy.deepcopy(stamped)

    async def update_one(
        self, collection: str, filter: dict[str, Any], patch: dict[str, Any]
    ) -> Document | None:
        check_collection(collection)
        async with self._session_factory() as session:
            async with session.begin():
                for row in await self._rows(session, collection, for_update=True):
                    if matches(row.body, filter):
                        # Reassign rather than mutate so the JSON column is flagged dirty.
                        row.body = apply_patch(row.body, patch)
                        return copy.deepcopy(row.body)
        return None

    async def delete_one(self, collection: str, filter: dict[str, Any]) -> bool:
        check_collection(collection)
        async with self._session_factory() as session:
            async with session.begin():
                for row in await self._rows(session, collection, for_update=True):
                    if matches(row.body, filter):
                        await session.delete(row)
                        return True
        return False
