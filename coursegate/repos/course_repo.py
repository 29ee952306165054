from __future__ import annotations

from typing import Any

from coursegate.models.course import Course
from coursegate.repos.codec import dump_money, load_dt, load_money
from coursegate.repos.document_store import Document, DocumentStore

_COLLECTION = "courses"

# domain attribute -> document key
_FIELDS = {
    "title": "title",
    "description": "description",
    "price": "price",
    "duration": "duration",
    "access_period": "accessPeriod",
    "instructor": "instructor",
    "category": "category",
    "level": "level",
}


class CourseRepo:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, course_id: str) -> Course | None:
        doc = await self._store.find_by_id(_COLLECTION, course_id)
        return _doc_to_course(doc) if doc is not None else None

    async def list_all(self) -> list[Course]:
        docs = await self._store.find(_COLLECTION)
        return [_doc_to_course(d) for d in docs]

    async def add(self, course: Course) -> Course:
        doc = {"_id": course.id}
        doc.update(_encode(_values(course)))
        return _doc_to_course(await self._store.insert_one(_COLLECTION, doc))

    async def update(self, course_id: str, changes: dict[str, Any]) -> Course | None:
        doc = await self._store.update_one(
            _COLLECTION, {"_id": course_id}, _encode(changes)
        )
        return _doc_to_course(doc) if doc is not None else None

    async def delete(self, course_id: str) -> bool:
        return await self._store.delete_one(_COLLECTION, {"_id": course_id})


def _values(course: Course) -> dict[str, Any]:
    return {attr: getattr(course, attr) for attr in _FIELDS}


def _encode(changes: dict[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for attr, value in changes.items():
        if attr == "price":
            value = dump_money(value)
        patch[_FIELDS[attr]] = value
    return patch


def _doc_to_course(doc: Document) -> Course:
    return Course(
        id=doc["_id"],
        title=doc["title"],
        description=doc.get("description", ""),
        price=load_money(doc["price"]),
        duration=int(doc["duration"]),
        access_period=int(doc["accessPeriod"]),
        instructor=doc.get("instructor", ""),
        category=doc["category"],
        level=doc["level"],
        created_at=load_dt(doc.get("createdAt")),
        updated_at=load_dt(doc.get("updatedAt")),
    )
