"""Entitlement gate: may this user see this course's material right now?

decide_access() is the whole rule and does no I/O; EntitlementService only
loads the records it needs and hands them over. The checks short-circuit
in a fixed order:

  1. course exists                     else course_not_found
  2. registration for (user, course)   else not_registered
  3. now <= access_expires_at          else access_expired
  4. effective payment status ==
     completed                         else payment_incomplete

so an expired registration reports access_expired even when its payment
was refunded, and a missing course never reaches the registration lookup.

The effective payment status is read from the linked Payment when it can be
found and from the registration's stored copy otherwise. A refund that
updated the payment but not yet the registration therefore already denies.

WHY A PURE decide_access()
----------------------------
The same rule backs the access check route and both material routes.
Keeping it a function of (course, registration, payment, now) means each
of them gets the same answer for the same records. Tests can also pin
``now`` to the second around an expiry without a store or a clock.

WHY DENIALS ARE DATA
----------------------
check_access() returns an AccessDecision instead of raising, because the
client wants to render "renew your access" differently from "buy this
course". Only the material routes raise on a denial: NotFoundError for a
missing course, ForbiddenError with the reason as the error code otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from coursegate.core.errors import ForbiddenError, NotFoundError
from coursegate.core.metrics import ACCESS_DECISIONS
from coursegate.models import access
from coursegate.models.access import (
    AccessDecision,
    MaterialListing,
    MaterialView,
    MaterialViewer,
)
from coursegate.models.course import Course
from coursegate.models.material import Material
from coursegate.models.payment import Payment
from coursegate.models.principal import Principal
from coursegate.models.registration import Registration
from coursegate.repos.course_repo import CourseRepo
from coursegate.repos.material_repo import MaterialRepo
from coursegate.repos.payment_repo import PaymentRepo
from coursegate.repos.registration_repo import RegistrationRepo

logger = logging.getLogger(__name__)

_CONTENT_CONTROL = {
    "PDF": "PDF will be opened in viewer with copy disabled",
    "Video": "Video will be streamed with download disabled",
    "HTML": "HTML content with selection and right-click disabled",
}
_STANDARD_ACCESS = "Standard access"

_DENIAL_MESSAGES = {
    access.NOT_REGISTERED: "You are not registered for this course",
    access.ACCESS_EXPIRED: "Your access to this course has expired",
    access.PAYMENT_INCOMPLETE: "Payment required to access course materials",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def compute_access_expiry(course: Course, registered_at: datetime) -> datetime:
    """registered_at + 7 * (duration + access_period) days."""
    return registered_at + course.access_window


def effective_payment_status(
    registration: Registration, payment: Payment | None
) -> str:
    if payment is not None:
        return payment.status
    return registration.payment_status


def decide_access(
    course: Course | None,
    registration: Registration | None,
    payment: Payment | None,
    now: datetime,
) -> AccessDecision:
    if course is None:
        return AccessDecision.deny(access.COURSE_NOT_FOUND)
    if registration is None:
        return AccessDecision.deny(access.NOT_REGISTERED)
    if now > registration.access_expires_at:
        return AccessDecision.deny(access.ACCESS_EXPIRED)
    if effective_payment_status(registration, payment) != "completed":
        return AccessDecision.deny(access.PAYMENT_INCOMPLETE)
    return AccessDecision.allow(registration.access_expires_at)


def to_material_view(material: Material) -> MaterialView:
    if material.uses_viewer:
        access_url = f"/v1/materials/view/{material.id}"
        control = _CONTENT_CONTROL[material.type]
    else:
        access_url = material.content
        control = _STANDARD_ACCESS
    return MaterialView(
        id=material.id,
        course_id=material.course_id,
        title=material.title,
        description=material.description,
        type=material.type,
        order=material.order,
        is_published=material.is_published,
        access_url=access_url,
        content_control=control,
    )


def raise_for_denial(decision: AccessDecision) -> None:
    if decision.allowed:
        return
    if decision.reason == access.COURSE_NOT_FOUND:
        raise NotFoundError("Course not found", code=access.COURSE_NOT_FOUND)
    raise ForbiddenError(
        _DENIAL_MESSAGES.get(decision.reason, "Access denied"), code=decision.reason
    )


class EntitlementService:
    def __init__(
        self,
        *,
        courses: CourseRepo,
        registrations: RegistrationRepo,
        payments: PaymentRepo,
        materials: MaterialRepo,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._courses = courses
        self._registrations = registrations
        self._payments = payments
        self._materials = materials
        self._clock = clock

    async def check_access(self, user_id: str, course_id: str) -> AccessDecision:
        course = await self._courses.get(course_id)
        registration = None
        payment = None
        if course is not None:
            registration = await self._registrations.get_for(user_id, course_id)
        if registration is not None and registration.payment_id:
            payment = await self._payments.get_by_reference(registration.payment_id)

        decision = decide_access(course, registration, payment, self._clock())
        ACCESS_DECISIONS.labels(reason=decision.reason).inc()
        if not decision.allowed:
            logger.info(
                "Access denied  user=%s course=%s reason=%s",
                user_id,
                course_id,
                decision.reason,
                extra={"user_id": user_id, "course_id": course_id, "reason": decision.reason},
            )
        return decision

    async def list_entitled_materials(
        self, principal: Principal, course_id: str
    ) -> MaterialListing:
        """Materials the caller may see for a course, as view-only descriptors.

        Admins skip the registration gate and also see unpublished drafts.
        Everyone else must pass check_access and only sees published items.
        """
        if principal.is_admin:
            if await self._courses.get(course_id) is None:
                raise NotFoundError("Course not found", code=access.COURSE_NOT_FOUND)
            materials = await self._materials.list_by_course(
                course_id, published_only=False
            )
            return MaterialListing(
                course_id=course_id,
                materials=[to_material_view(m) for m in materials],
            )

        decision = await self.check_access(principal.user_id, course_id)
        raise_for_denial(decision)
        materials = await self._materials.list_by_course(course_id, published_only=True)
        return MaterialListing(
            course_id=course_id,
            materials=[to_material_view(m) for m in materials],
            expires_at=decision.expires_at,
        )

    async def view_material(
        self, principal: Principal, material_id: str, *, viewer_label: str | None = None
    ) -> MaterialViewer:
        """Open one material in the protected viewer.

        The viewer is only reachable from a registered context, so the gate
        applies to admins as well here.
        """
        material = await self._materials.get(material_id)
        if material is None or (not material.is_published and not principal.is_admin):
            raise NotFoundError("Material not found", code="material_not_found")

        decision = await self.check_access(principal.user_id, material.course_id)
        raise_for_denial(decision)

        view = to_material_view(material)
        return MaterialViewer(
            material_id=material.id,
            title=material.title,
            description=material.description,
            type=material.type,
            content_control=view.content_control,
            watermark=f"Course Platform - {viewer_label or principal.user_id}",
            body=material.content if material.type == "HTML" else None,
            redirect_url=None if material.uses_viewer else material.content,
            expires_at=decision.expires_at,
        )
