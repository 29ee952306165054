"""Payment endpoints: purchase, history, lookup, admin listing and refunds."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from coursegate.api.dependencies import AdminUser, CurrentUser
from coursegate.api.schemas import (
    Envelope,
    PaymentIn,
    PaymentOut,
    PaymentStatsOut,
    PurchaseOut,
    RegistrationOut,
    ok,
)
from coursegate.services.registry import payment_service

router = APIRouter(prefix="/v1/payments", tags=["payments"])


@router.post(
    "/process",
    response_model=Envelope[PurchaseOut],
    status_code=status.HTTP_201_CREATED,
)
async def process_payment(payload: PaymentIn, principal: CurrentUser) -> dict:
    outcome = await payment_service.process_payment(
        principal,
        payload.course_id,
        payload.payment_method,
        payload.payment_details,
    )
    return ok(
        PurchaseOut(
            payment=PaymentOut.of(outcome.payment),
            registration=RegistrationOut.of(outcome.registration),
        ),
        outcome.message,
    )


@router.get("/history", response_model=Envelope[list[PaymentOut]])
async def payment_history(principal: CurrentUser) -> dict:
    payments = await payment_service.payment_history(principal)
    return ok([PaymentOut.of(p) for p in payments])


@router.get("/stats", response_model=Envelope[PaymentStatsOut])
async def payment_statistics(_admin: AdminUser) -> dict:
    return ok(PaymentStatsOut.of(await payment_service.payment_statistics()))


@router.get("", response_model=Envelope[list[PaymentOut]])
async def list_payments(
    _admin: AdminUser, status_filter: str | None = Query(None, alias="status")
) -> dict:
    payments = await payment_service.list_payments(status=status_filter)
    return ok([PaymentOut.of(p) for p in payments])


@router.get("/{payment_id}", response_model=Envelope[PaymentOut])
async def get_payment(payment_id: str, principal: CurrentUser) -> dict:
    return ok(PaymentOut.of(await payment_service.get_payment(principal, payment_id)))


@router.post("/{payment_id}/refund", response_model=Envelope[PaymentOut])
async def refund_payment(payment_id: str, principal: CurrentUser) -> dict:
    # Role is checked by the service so the refusal carries admin_required.
    payment = await payment_service.refund_payment(principal, payment_id)
    return ok(PaymentOut.of(payment), "Payment refunded")
