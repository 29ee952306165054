from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter

from coursegate.api.dependencies import AdminUser
from coursegate.api.schemas import AnalyticsOut, Envelope, PaymentOut, ReconcileOut, ok
from coursegate.core.config import SETTINGS
from coursegate.services.registry import analytics_service, payment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/payments/reconcile", response_model=Envelope[ReconcileOut])
async def reconcile_payments(admin: AdminUser) -> dict:
    """Fail payments stuck in ``processing`` past PAYMENT_TIMEOUT_MINUTES."""
    failed = await payment_service.fail_stale_payments(
        timedelta(minutes=SETTINGS.payment_timeout_minutes)
    )
    logger.info(
        "Reconciliation run  by=%s failed=%d",
        admin.user_id,
        len(failed),
        extra={"user_id": admin.user_id},
    )
    return ok(
        ReconcileOut(failed=[PaymentOut.of(p) for p in failed]),
        f"{len(failed)} stale payment(s) marked failed",
    )


@router.get("/analytics", response_model=Envelope[AnalyticsOut])
async def analytics(_admin: AdminUser) -> dict:
    return ok(AnalyticsOut.of(await analytics_service.overview()))
