"""Simulated payment rails: MTN Mobile Money, Orange Money, Credit Card.

Each provider waits a fixed latency and then succeeds with its own
probability. These numbers model the rails for demos and tests; a real
deployment replaces the provider objects, not the payment service.

  provider      success   latency
  MTN           0.90      2.0s
  Orange        0.85      1.5s
  Credit Card   0.95      3.0s   (card number must be 13-19 digits first)

Latency is multiplied by SETTINGS.provider_latency_scale, which tests set
to 0.
"""

from __future__ import annotations

import asyncio
import random
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from coursegate.core.metrics import PROVIDER_LATENCY


@dataclass(frozen=True, slots=True)
class ProviderResult:
    success: bool
    message: str
    transaction_id: str | None = None
    provider_reference: str | None = None

    @property
    def status(self) -> str:
        return "completed" if self.success else "failed"


@runtime_checkable
class PaymentProvider(Protocol):
    method: str

    async def charge(self, *, amount: Decimal, details: Mapping[str, Any]) -> ProviderResult:
        ...


class SimulatedProvider:
    def __init__(
        self,
        *,
        method: str,
        prefix: str,
        success_rate: float,
        latency_seconds: float,
        success_message: str,
        failure_message: str,
        latency_scale: float = 1.0,
        rng: random.Random | None = None,
    ) -> None:
        self.method = method
        self.prefix = prefix
        self.success_rate = success_rate
        self.latency_seconds = latency_seconds
        self.latency_scale = latency_scale
        self._success_message = success_message
        self._failure_message = failure_message
        self._rng = rng or random.Random()

    def validate(self, details: Mapping[str, Any]) -> str | None:
        """Return an error message if ``details`` cannot be charged at all."""
        return None

    async def charge(self, *, amount: Decimal, details: Mapping[str, Any]) -> ProviderResult:
        error = self.validate(details)
        if error is not None:
            return ProviderResult(success=False, message=error)

        delay = self.latency_seconds * self.latency_scale
        with PROVIDER_LATENCY.labels(method=self.method).time():
            if delay > 0:
                await asyncio.sleep(delay)

        if self._rng.random() >= self.success_rate:
            return ProviderResult(success=False, message=self._failure_message)

        stamp = int(time.time() * 1000)
        return ProviderResult(
            success=True,
            message=self._success_message,
            transaction_id=f"{self.prefix}-{stamp}-{self._rng.randrange(1_000_000)}",
            provider_reference=f"{self.prefix}-REF-{self._rng.randrange(1_000_000_000)}",
        )


_CARD_SEPARATORS = re.compile(r"[\s-]")


def normalize_card_number(raw: Any) -> str:
    return _CARD_SEPARATORS.sub("", str(raw or ""))


class CreditCardProvider(SimulatedProvider):
    def validate(self, details: Mapping[str, Any]) -> str | None:
        number = normalize_card_number(details.get("card_number") or details.get("cardNumber"))
        if not number.isdigit() or not 13 <= len(number) <= 19:
            return "Invalid card number"
        return None


def build_providers(
    *, latency_scale: float = 1.0, rng: random.Random | None = None
) -> dict[str, SimulatedProvider]:
    """One provider per supported payment method, keyed by method name."""
    return {
        "MTN": SimulatedProvider(
            method="MTN",
            prefix="MTN",
            success_rate=0.90,
            latency_seconds=2.0,
            success_message="Payment processed successfully via MTN Mobile Money",
            failure_message=(
                "Payment failed. Please check your MTN Mobile Money balance "
                "and try again."
            ),
            latency_scale=latency_scale,
            rng=rng,
        ),
        "Orange": SimulatedProvider(
            method="Orange",
            prefix="ORG",
            success_rate=0.85,
            latency_seconds=1.5,
            success_message="Payment processed successfully via Orange Money",
            failure_message=(
                "Payment failed. Please check your Orange Money account and try again."
            ),
            latency_scale=latency_scale,
            rng=rng,
        ),
        "Credit Card": CreditCardProvider(
            method="Credit Card",
            prefix="CC",
            success_rate=0.95,
            latency_seconds=3.0,
            success_message="Payment processed successfully via Credit Card",
            failure_message=(
                "Payment failed. Please check your card details and try again."
            ),
            latency_scale=latency_scale,
            rng=rng,
        ),
    }
