from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

REGISTRATION_PAYMENT_STATUSES: tuple[str, ...] = (
    "pending",
    "completed",
    "failed",
    "refunded",
)


@dataclass(frozen=True, slots=True)
class Registration:
    """The entitlement record: one per (user, course), created on payment success.

    payment_id holds the linked payment's *reference* (PAY-...), which is
    how refunds find the registration to revoke.
    """

    id: str
    user_id: str
    course_id: str
    payment_id: str
    payment_amount: Decimal
    access_expires_at: datetime
    payment_status: str = "pending"  # pending|completed|failed|refunded
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def new(
        *,
        user_id: str,
        course_id: str,
        payment_id: str,
        payment_amount: Decimal,
        access_expires_at: datetime,
        payment_status: str = "completed",
    ) -> Registration:
        return Registration(
            id=str(uuid4()),
            user_id=user_id,
            course_id=course_id,
            payment_id=payment_id,
            payment_amount=payment_amount,
            access_expires_at=access_expires_at,
            payment_status=payment_status,
        )
