"""Domain error taxonomy.

Services raise these; the API layer renders them into the error envelope
(coursegate.api.errors). Each carries a machine-readable ``code`` so callers
can tell "never registered" from "expired" from "payment refunded" without
parsing messages.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class: code + human message + HTTP status + optional details."""

    status_code = 500
    default_code = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppError):
    """Missing required field, bad enum value, or malformed input."""

    status_code = 422
    default_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    default_code = "authentication_required"


class ForbiddenError(AppError):
    """Caller is known but not allowed.

    ``code`` is the denial reason: not_registered, access_expired,
    payment_incomplete, admin_required, not_payment_owner.
    """

    status_code = 403
    default_code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_code = "not_found"


class ConflictError(AppError):
    """Duplicate registration, duplicate email, or an illegal state change."""

    status_code = 409
    default_code = "conflict"


class UnsupportedMethodError(AppError):
    status_code = 400
    default_code = "unsupported_method"


class ProviderFailureError(AppError):
    """The payment provider declined. ``details`` names the failed payment."""

    status_code = 402
    default_code = "provider_failure"
