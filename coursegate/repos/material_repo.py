from __future__ import annotations

from typing import Any

from coursegate.models.material import Material
from coursegate.repos.codec import load_dt
from coursegate.repos.document_store import Document, DocumentStore

_COLLECTION = "materials"

_FIELDS = {
    "course_id": "course",
    "title": "title",
    "description": "description",
    "type": "type",
    "content": "content",
    "order": "order",
    "is_published": "isPublished",
}


class MaterialRepo:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, material_id: str) -> Material | None:
        doc = await self._store.find_by_id(_COLLECTION, material_id)
        return _doc_to_material(doc) if doc is not None else None

    async def list_by_course(
        self, course_id: str, *, published_only: bool = True
    ) -> list[Material]:
        docs = await self._store.find(_COLLECTION, {"course": course_id})
        materials = [_doc_to_material(d) for d in docs]
        if published_only:
            materials = [m for m in materials if m.is_published]
        return sorted(materials, key=lambda m: m.order)

    async def add(self, material: Material) -> Material:
        doc = {"_id": material.id}
        doc.update({key: getattr(material, attr) for attr, key in _FIELDS.items()})
        return _doc_to_material(await self._store.insert_one(_COLLECTION, doc))

    async def update(self, material_id: str, changes: dict[str, Any]) -> Material | None:
        patch = {_FIELDS[attr]: value for attr, value in changes.items()}
        doc = await self._store.update_one(_COLLECTION, {"_id": material_id}, patch)
        return _doc_to_material(doc) if doc is not None else None

    async def delete(self, material_id: str) -> bool:
        return await self._store.delete_one(_COLLECTION, {"_id": material_id})


def _doc_to_material(doc: Document) -> Material:
    return Material(
        id=doc["_id"],
        course_id=doc["course"],
        title=doc["title"],
        description=doc.get("description", ""),
        type=doc["type"],
        content=doc.get("content", ""),
        order=int(doc.get("order") or 0),
        is_published=bool(doc.get("isPublished", True)),
        created_at=load_dt(doc.get("createdAt")),
        updated_at=load_dt(doc.get("updatedAt")),
    )
