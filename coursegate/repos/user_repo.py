from __future__ import annotations

from coursegate.models.user import User
from coursegate.repos.codec import load_dt
from coursegate.repos.document_store import Document, DocumentStore

_COLLECTION = "users"


class UserRepo:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get_by_id(self, user_id: str) -> User | None:
        doc = await self._store.find_by_id(_COLLECTION, user_id)
        return _doc_to_user(doc) if doc is not None else None

    async def get_by_email(self, email: str) -> User | None:
        doc = await self._store.find_one(_COLLECTION, {"email": email})
        return _doc_to_user(doc) if doc is not None else None

    async def list_all(self) -> list[User]:
        return [_doc_to_user(d) for d in await self._store.find(_COLLECTION)]

    async def add(self, user: User) -> User:
        if await self.get_by_email(user.email) is not None:
            raise ValueError("email already exists")
        doc = {
            "_id": user.id,
            "name": user.name,
            "email": user.email,
            "password": user.password_hash,
            "role": user.role,
        }
        return _doc_to_user(await self._store.insert_one(_COLLECTION, doc))

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        await self._store.update_one(
            _COLLECTION, {"_id": user_id}, {"password": password_hash}
        )


def _doc_to_user(doc: Document) -> User:
    return User(
        id=doc["_id"],
        name=doc.get("name", ""),
        email=doc["email"],
        password_hash=doc.get("password", ""),
        role=doc.get("role", "user"),
        created_at=load_dt(doc.get("createdAt")),
    )
