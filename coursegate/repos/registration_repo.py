from __future__ import annotations

from coursegate.models.registration import Registration
from coursegate.repos.codec import dump_dt, dump_money, load_dt, load_money
from coursegate.repos.document_store import Document, DocumentStore

_COLLECTION = "registrations"


class RegistrationRepo:
    """Registrations keyed by (user, course).

    ``add`` does not check for an existing registration: that check has to
    sit in the same critical section as the insert, which the payment
    service owns (coursegate.db.locks.registration_lock).
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get_for(self, user_id: str, course_id: str) -> Registration | None:
        doc = await self._store.find_one(
            _COLLECTION, {"user": user_id, "course": course_id}
        )
        return _doc_to_registration(doc) if doc is not None else None

    async def get_by_payment_id(self, payment_id: str) -> Registration | None:
        doc = await self._store.find_one(_COLLECTION, {"paymentId": payment_id})
        return _doc_to_registration(doc) if doc is not None else None

    async def list_all(self) -> list[Registration]:
        return [_doc_to_registration(d) for d in await self._store.find(_COLLECTION)]

    async def list_by_user(self, user_id: str) -> list[Registration]:
        docs = await self._store.find(_COLLECTION, {"user": user_id})
        return [_doc_to_registration(d) for d in docs]

    async def list_by_course(self, course_id: str) -> list[Registration]:
        docs = await self._store.find(_COLLECTION, {"course": course_id})
        return [_doc_to_registration(d) for d in docs]

    async def add(self, registration: Registration) -> Registration:
        doc = {
            "_id": registration.id,
            "user": registration.user_id,
            "course": registration.course_id,
            "paymentStatus": registration.payment_status,
            "paymentId": registration.payment_id,
            "paymentAmount": dump_money(registration.payment_amount),
            "accessExpiresAt": dump_dt(registration.access_expires_at),
        }
        return _doc_to_registration(await self._store.insert_one(_COLLECTION, doc))

    async def set_payment_status(
        self, payment_id: str, payment_status: str
    ) -> Registration | None:
        doc = await self._store.update_one(
            _COLLECTION, {"paymentId": payment_id}, {"paymentStatus": payment_status}
        )
        return _doc_to_registration(doc) if doc is not None else None


def _doc_to_registration(doc: Document) -> Registration:
    expires_at = load_dt(doc.get("accessExpiresAt"))
    if expires_at is None:
        raise ValueError(f"registration {doc['_id']} has no accessExpiresAt")
    return Registration(
        id=doc["_id"],
        user_id=doc["user"],
        course_id=doc["course"],
        payment_id=doc.get("paymentId", ""),
        payment_amount=load_money(doc.get("paymentAmount", "0")),
        access_expires_at=expires_at,
        payment_status=doc.get("paymentStatus", "pending"),
        created_at=load_dt(doc.get("createdAt")),
        updated_at=load_dt(doc.get("updatedAt")),
    )
