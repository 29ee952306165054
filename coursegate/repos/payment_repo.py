from __future__ import annotations

from typing import Any

from coursegate.models.payment import Payment
from coursegate.repos.codec import dump_dt, dump_money, load_dt, load_money
from coursegate.repos.document_store import Document, DocumentStore

_COLLECTION = "payments"

_FIELDS = {
    "user_id": "user",
    "course_id": "course",
    "amount": "amount",
    "payment_method": "paymentMethod",
    "payment_reference": "paymentReference",
    "status": "status",
    "transaction_id": "transactionId",
    "provider_reference": "providerReference",
    "refunded_at": "refundedAt",
    "refunded_by": "refundedBy",
    "metadata": "metadata",
}


class PaymentRepo:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, payment_id: str) -> Payment | None:
        doc = await self._store.find_by_id(_COLLECTION, payment_id)
        return _doc_to_payment(doc) if doc is not None else None

    async def get_by_reference(self, reference: str) -> Payment | None:
        doc = await self._store.find_one(_COLLECTION, {"paymentReference": reference})
        return _doc_to_payment(doc) if doc is not None else None

    async def list_all(self) -> list[Payment]:
        return [_doc_to_payment(d) for d in await self._store.find(_COLLECTION)]

    async def list_by_user(self, user_id: str) -> list[Payment]:
        docs = await self._store.find(_COLLECTION, {"user": user_id})
        return [_doc_to_payment(d) for d in docs]

    async def list_by_status(self, status: str) -> list[Payment]:
        docs = await self._store.find(_COLLECTION, {"status": status})
        return [_doc_to_payment(d) for d in docs]

    async def add(self, payment: Payment) -> Payment:
        doc = {"_id": payment.id}
        doc.update(_encode({attr: getattr(payment, attr) for attr in _FIELDS}))
        return _doc_to_payment(await self._store.insert_one(_COLLECTION, doc))

    async def update(
        self,
        payment_id: str,
        changes: dict[str, Any],
        *,
        expected_status: str | None = None,
    ) -> Payment | None:
        """Apply ``changes``; with ``expected_status``, only while the stored status matches.

        Returns None when nothing matched, so a writer holding a stale copy
        loses instead of overwriting a newer status.
        """
        filter: dict[str, Any] = {"_id": payment_id}
        if expected_status is not None:
            filter["status"] = expected_status
        doc = await self._store.update_one(_COLLECTION, filter, _encode(changes))
        return _doc_to_payment(doc) if doc is not None else None


def _encode(changes: dict[str, Any]) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for attr, value in changes.items():
        if attr == "amount":
            value = dump_money(value)
        elif attr == "refunded_at":
            value = dump_dt(value)
        elif attr == "metadata":
            value = dict(value)
        patch[_FIELDS[attr]] = value
    return patch


def _doc_to_payment(doc: Document) -> Payment:
    return Payment(
        id=doc["_id"],
        user_id=doc["user"],
        course_id=doc["course"],
        amount=load_money(doc["amount"]),
        payment_method=doc["paymentMethod"],
        payment_reference=doc["paymentReference"],
        status=doc.get("status", "pending"),
        transaction_id=doc.get("transactionId"),
        provider_reference=doc.get("providerReference"),
        refunded_at=load_dt(doc.get("refundedAt")),
        refunded_by=doc.get("refundedBy"),
        metadata=dict(doc.get("metadata") or {}),
        created_at=load_dt(doc.get("createdAt")),
        updated_at=load_dt(doc.get("updatedAt")),
    )
