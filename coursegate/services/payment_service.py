"""Payment processing: the only path that grants a course entitlement.

process_payment() runs in this order:

  course exists?            no  -> NotFoundError(course_not_found)
  method supported?         no  -> UnsupportedMethodError
  already registered?       yes -> ConflictError(already_registered)
  create Payment(processing)
  provider.charge()         declined -> Payment(failed), ProviderFailureError
  -- registration_lock(user, course) --
  still unregistered?       no  -> Payment(failed, registration_conflict), ConflictError
  still processing?         no  -> ConflictError(payment_not_processing)
  Payment(completed), insert Registration
  -- release --

WHY TWO REGISTRATION CHECKS
-----------------------------
The early "already registered" check only saves a provider call. The one
inside the lock holds the at-most-one-registration invariant when two
purchases for the same pair overlap. It runs before the payment is
marked completed, so a lost race never leaves a completed payment
without a registration behind it.

WHY CONDITIONAL STATUS WRITES
-------------------------------
A Payment is read once and then written after an await (provider
latency, a concurrent refund). Every status change is
therefore a compare-and-set on the stored status (PaymentRepo.update
with ``expected_status``): the transition is checked against the status
this call read, and the write only lands if nobody changed it since.
Two concurrent refunds produce one refund and one not_refundable, and a
payment that reconciliation failed during the provider call can no
longer be completed or grant a registration.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from coursegate.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ProviderFailureError,
    UnsupportedMethodError,
)
from coursegate.core.metrics import (
    PAYMENT_ATTEMPTS,
    REFUNDS,
    REGISTRATION_CONFLICTS,
    STALE_PAYMENTS_FAILED,
)
from coursegate.db.locks import KeyedLock, registration_key
from coursegate.models.payment import (
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    Payment,
    PaymentStats,
    can_transition,
)
from coursegate.models.principal import Principal
from coursegate.models.registration import Registration
from coursegate.repos.course_repo import CourseRepo
from coursegate.repos.payment_repo import PaymentRepo
from coursegate.repos.registration_repo import RegistrationRepo
from coursegate.repos.user_repo import UserRepo
from coursegate.services.entitlement_service import compute_access_expiry
from coursegate.services.payment_providers import PaymentProvider, normalize_card_number

logger = logging.getLogger(__name__)

REGISTRATION_CONFLICT = "registration_conflict"
_SECRET_DETAIL_KEYS = frozenset({"cvv", "cvc", "pin", "password", "expiry", "expiryDate"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


def sanitize_details(details: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of the caller's payment details that is safe to persist.

    Card numbers keep their last four digits; secrets are dropped.
    """
    clean: dict[str, Any] = {}
    for key, value in details.items():
        if key in _SECRET_DETAIL_KEYS:
            continue
        if key in ("card_number", "cardNumber"):
            digits = normalize_card_number(value)
            clean[key] = f"****{digits[-4:]}" if digits else ""
            continue
        clean[key] = value
    return clean


@dataclass(frozen=True, slots=True)
class PaymentOutcome:
    payment: Payment
    registration: Registration
    message: str


class PaymentService:
    def __init__(
        self,
        *,
        courses: CourseRepo,
        payments: PaymentRepo,
        registrations: RegistrationRepo,
        users: UserRepo,
        providers: Mapping[str, PaymentProvider],
        lock: KeyedLock,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._courses = courses
        self._payments = payments
        self._registrations = registrations
        self._users = users
        self._providers = providers
        self._lock = lock
        self._clock = clock

    async def process_payment(
        self,
        principal: Principal,
        course_id: str,
        method: str,
        details: Mapping[str, Any] | None = None,
    ) -> PaymentOutcome:
        details = details or {}
        user_id = principal.user_id

        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError("Course not found", code="course_not_found")

        provider = self._providers.get(method)
        if provider is None:
            raise UnsupportedMethodError(
                f"Unsupported payment method: {method}",
                details={"supported": list(PAYMENT_METHODS)},
            )

        if await self._registrations.get_for(user_id, course_id) is not None:
            raise ConflictError(
                "You are already registered for this course", code="already_registered"
            )

        user = await self._users.get_by_id(user_id)
        metadata: dict[str, Any] = {
            "courseTitle": course.title,
            "paymentDetails": sanitize_details(details),
        }
        if user is not None:
            metadata["userEmail"] = user.email

        payment = await self._payments.add(
            Payment.new(
                user_id=user_id,
                course_id=course_id,
                amount=course.price,
                payment_method=method,
                metadata=metadata,
            )
        )
        logger.info(
            "Payment created  reference=%s user=%s course=%s method=%s amount=%s",
            payment.payment_reference,
            user_id,
            course_id,
            method,
            payment.amount,
            extra={
                "user_id": user_id,
                "course_id": course_id,
                "payment_reference": payment.payment_reference,
            },
        )

        result = await provider.charge(amount=payment.amount, details=details)

        if not result.success:
            failed = await self._try_set_status(
                payment, "failed", metadata={**payment.metadata, "failureReason": result.message}
            )
            if failed is None:
                failed = await self._payments.get(payment.id) or payment
            PAYMENT_ATTEMPTS.labels(method=method, outcome="failed").inc()
            logger.warning(
                "Payment failed  reference=%s reason=%s",
                payment.payment_reference,
                result.message,
                extra={"payment_reference": payment.payment_reference, "reason": result.message},
            )
            raise ProviderFailureError(
                result.message,
                details={
                    "payment_id": failed.id,
                    "payment_reference": failed.payment_reference,
                    "status": failed.status,
                },
            )

        async with self._lock.hold(registration_key(user_id, course_id)):
            if await self._registrations.get_for(user_id, course_id) is not None:
                # None means reconciliation already failed it; either way it stays failed.
                await self._try_set_status(
                    payment,
                    "failed",
                    metadata={**payment.metadata, "failureReason": REGISTRATION_CONFLICT},
                )
                REGISTRATION_CONFLICTS.inc()
                PAYMENT_ATTEMPTS.labels(method=method, outcome="conflict").inc()
                logger.warning(
                    "Registration conflict  reference=%s user=%s course=%s",
                    payment.payment_reference,
                    user_id,
                    course_id,
                    extra={
                        "user_id": user_id,
                        "course_id": course_id,
                        "payment_reference": payment.payment_reference,
                        "reason": REGISTRATION_CONFLICT,
                    },
                )
                raise ConflictError(
                    "You are already registered for this course",
                    code="already_registered",
                    details={
                        "payment_id": payment.id,
                        "payment_reference": payment.payment_reference,
                    },
                )

            # Reconciliation may have failed the payment during the charge.
            completed = await self._set_status(
                payment,
                "completed",
                conflict_code="payment_not_processing",
                transaction_id=result.transaction_id,
                provider_reference=result.provider_reference,
            )
            registered_at = self._clock()
            registration = await self._registrations.add(
                Registration.new(
                    user_id=user_id,
                    course_id=course_id,
                    payment_id=completed.payment_reference,
                    payment_amount=completed.amount,
                    access_expires_at=compute_access_expiry(course, registered_at),
                )
            )

        PAYMENT_ATTEMPTS.labels(method=method, outcome="completed").inc()
        logger.info(
            "Registration created  user=%s course=%s reference=%s expires=%s",
            user_id,
            course_id,
            completed.payment_reference,
            registration.access_expires_at.isoformat(),
            extra={
                "user_id": user_id,
                "course_id": course_id,
                "payment_reference": completed.payment_reference,
            },
        )
        return PaymentOutcome(payment=completed, registration=registration, message=result.message)

    async def refund_payment(self, principal: Principal, payment_id: str) -> Payment:
        if not principal.is_admin:
            raise ForbiddenError("Admin role required", code="admin_required")

        payment = await self._payments.get(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", code="payment_not_found")
        if payment.status != "completed":
            raise ConflictError(
                f"Only completed payments can be refunded (status={payment.status})",
                code="not_refundable",
                details={
                    "payment_id": payment.id,
                    "payment_reference": payment.payment_reference,
                    "status": payment.status,
                },
            )

        refunded = await self._set_status(
            payment,
            "refunded",
            conflict_code="not_refundable",
            refunded_at=self._clock(),
            refunded_by=principal.user_id,
        )
        await self._registrations.set_payment_status(payment.payment_reference, "refunded")
        REFUNDS.inc()
        logger.info(
            "Payment refunded  reference=%s by=%s",
            payment.payment_reference,
            principal.user_id,
            extra={"payment_reference": payment.payment_reference, "user_id": principal.user_id},
        )
        return refunded

    async def get_payment(self, principal: Principal, payment_id: str) -> Payment:
        payment = await self._payments.get(payment_id)
        if payment is None:
            raise NotFoundError("Payment not found", code="payment_not_found")
        if payment.user_id != principal.user_id and not principal.is_admin:
            raise ForbiddenError("Not your payment", code="not_payment_owner")
        return payment

    async def payment_history(self, principal: Principal) -> list[Payment]:
        payments = await self._payments.list_by_user(principal.user_id)
        return _newest_first(payments)

    async def list_payments(self, *, status: str | None = None) -> list[Payment]:
        if status is None:
            payments = await self._payments.list_all()
        else:
            payments = await self._payments.list_by_status(status)
        return _newest_first(payments)

    async def payment_statistics(self) -> PaymentStats:
        payments = await self._payments.list_all()
        by_status = dict.fromkeys(PAYMENT_STATUSES, 0)
        by_status.update(Counter(p.status for p in payments))
        by_method = dict.fromkeys(PAYMENT_METHODS, 0)
        by_method.update(Counter(p.payment_method for p in payments))
        revenue = sum(
            (p.amount for p in payments if p.status == "completed"), Decimal("0")
        )
        return PaymentStats(
            total=len(payments),
            by_status=by_status,
            completed_amount=revenue,
            by_method=by_method,
        )

    async def fail_stale_payments(self, older_than: timedelta) -> list[Payment]:
        """Mark ``processing`` payments created before now - older_than as failed."""
        cutoff = self._clock() - older_than
        failed: list[Payment] = []
        for payment in await self._payments.list_by_status("processing"):
            if payment.created_at is None or payment.created_at > cutoff:
                continue
            updated = await self._try_set_status(
                payment,
                "failed",
                metadata={**payment.metadata, "failureReason": "timeout"},
            )
            if updated is None:
                # Finished while we were scanning.
                continue
            failed.append(updated)
            STALE_PAYMENTS_FAILED.inc()
            logger.warning(
                "Stale payment failed  reference=%s created=%s",
                payment.payment_reference,
                payment.created_at.isoformat(),
                extra={"payment_reference": payment.payment_reference, "reason": "timeout"},
            )
        return failed

    async def _try_set_status(
        self, payment: Payment, status: str, **changes: Any
    ) -> Payment | None:
        """Move ``payment`` to ``status`` if its stored status is still the one we read.

        Returns None when another writer changed the status first.
        """
        if not can_transition(payment.status, status):
            raise ConflictError(
                f"Payment cannot move from {payment.status} to {status}",
                code="invalid_transition",
            )
        return await self._payments.update(
            payment.id, {"status": status, **changes}, expected_status=payment.status
        )

    async def _set_status(
        self,
        payment: Payment,
        status: str,
        *,
        conflict_code: str = "invalid_transition",
        **changes: Any,
    ) -> Payment:
        updated = await self._try_set_status(payment, status, **changes)
        if updated is not None:
            return updated

        current = await self._payments.get(payment.id)
        if current is None:
            raise NotFoundError("Payment not found", code="payment_not_found")
        logger.warning(
            "Payment status changed concurrently  reference=%s read=%s stored=%s wanted=%s",
            payment.payment_reference,
            payment.status,
            current.status,
            status,
            extra={"payment_reference": payment.payment_reference, "reason": conflict_code},
        )
        raise ConflictError(
            f"Payment is {current.status} and cannot move to {status}",
            code=conflict_code,
            details={
                "payment_id": current.id,
                "payment_reference": current.payment_reference,
                "status": current.status,
            },
        )


def _newest_first(payments: list[Payment]) -> list[Payment]:
    epoch = datetime.min.replace(tzinfo=UTC)
    return sorted(payments, key=lambda p: p.created_at or epoch, reverse=True)
