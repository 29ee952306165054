"""JSON-safe encodings for the non-JSON types the models use."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any


def dump_dt(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.isoformat()


def load_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        # Accept the trailing "Z" that JavaScript's toISOString() writes.
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def dump_money(value: Decimal) -> str:
    return str(value)


def load_money(value: Any) -> Decimal:
    # str() first so floats from legacy files don't carry binary noise
    return Decimal(str(value))
