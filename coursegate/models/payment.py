from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import uuid4

PaymentMethod = Literal["MTN", "Orange", "Credit Card"]
PAYMENT_METHODS: tuple[str, ...] = ("MTN", "Orange", "Credit Card")

PaymentStatus = Literal[
    "pending", "processing", "completed", "failed", "cancelled", "refunded"
]
PAYMENT_STATUSES: tuple[str, ...] = (
    "pending",
    "processing",
    "completed",
    "failed",
    "cancelled",
    "refunded",
)

# Allowed status changes. completed -> refunded is the only move out of a
# terminal success; failed, cancelled and refunded are final.
_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "failed", "cancelled"}),
    "processing": frozenset({"completed", "failed"}),
    "completed": frozenset({"refunded"}),
    "failed": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


def new_payment_reference(method: str) -> str:
    """PAY-<METHOD>-<epoch ms>-<random>; spaces are dropped from the method."""
    compact = method.replace(" ", "")
    return f"PAY-{compact}-{int(time.time() * 1000)}-{random.randrange(1_000_000)}"


@dataclass(frozen=True, slots=True)
class Payment:
    id: str
    user_id: str
    course_id: str
    amount: Decimal
    payment_method: str  # MTN|Orange|Credit Card
    payment_reference: str
    status: str = "pending"
    transaction_id: str | None = None
    provider_reference: str | None = None
    refunded_at: datetime | None = None
    refunded_by: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS.get(self.status)

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        amount: Decimal,
        payment_method: str,
        status: str = "processing",
        metadata: dict[str, Any] | None = None,
    ) -> Payment:
        return Payment(
            id=str(uuid4()),
            user_id=user_id,
            course_id=course_id,
            amount=amount,
            payment_method=payment_method,
            payment_reference=new_payment_reference(payment_method),
            status=status,
            metadata=dict(metadata or {}),
        )


@dataclass(frozen=True, slots=True)
class PaymentStats:
    total: int
    by_status: dict[str, int]
    completed_amount: Decimal
    by_method: dict[str, int]
