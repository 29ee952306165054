from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ALLOWED = "allowed"
COURSE_NOT_FOUND = "course_not_found"
NOT_REGISTERED = "not_registered"
ACCESS_EXPIRED = "access_expired"
PAYMENT_INCOMPLETE = "payment_incomplete"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: str
    expires_at: datetime | None = None

    @staticmethod
    def allow(expires_at: datetime) -> AccessDecision:
        return AccessDecision(allowed=True, reason=ALLOWED, expires_at=expires_at)

    @staticmethod
    def deny(reason: str) -> AccessDecision:
        return AccessDecision(allowed=False, reason=reason)


@dataclass(frozen=True, slots=True)
class MaterialView:
    """View-only projection of a material: raw content replaced by an access URL."""

    id: str
    course_id: str
    title: str
    description: str
    type: str
    order: int
    is_published: bool
    access_url: str
    content_control: str


@dataclass(frozen=True, slots=True)
class MaterialListing:
    course_id: str
    materials: list[MaterialView]
    expires_at: datetime | None = None  # None for admin listings


@dataclass(frozen=True, slots=True)
class MaterialViewer:
    """What the protected viewer needs to render (or redirect for links)."""

    material_id: str
    title: str
    description: str
    type: str
    content_control: str
    watermark: str
    body: str | None = None  # embedded HTML, only for type=HTML
    redirect_url: str | None = None  # Link/Other: send the browser here
    expires_at: datetime | None = None
