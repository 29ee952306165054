from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from coursegate.models.payment import PaymentStats
from coursegate.repos.course_repo import CourseRepo
from coursegate.repos.payment_repo import PaymentRepo
from coursegate.repos.registration_repo import RegistrationRepo
from coursegate.repos.user_repo import UserRepo
from coursegate.services.entitlement_service import effective_payment_status
from coursegate.services.payment_service import PaymentService


@dataclass(frozen=True, slots=True)
class CourseRevenue:
    course_id: str
    title: str
    registrations: int
    revenue: Decimal


@dataclass(frozen=True, slots=True)
class AnalyticsOverview:
    courses: int
    users: int
    registrations: int
    active_entitlements: int
    payments: PaymentStats
    revenue_by_course: list[CourseRevenue]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AnalyticsService:
    """Admin dashboard numbers, computed from the stores on every call."""

    def __init__(
        self,
        *,
        courses: CourseRepo,
        users: UserRepo,
        registrations: RegistrationRepo,
        payments: PaymentRepo,
        payment_service: PaymentService,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._courses = courses
        self._users = users
        self._registrations = registrations
        self._payments = payments
        self._payment_service = payment_service
        self._clock = clock

    async def overview(self) -> AnalyticsOverview:
        now = self._clock()
        courses = await self._courses.list_all()
        users = await self._users.list_all()
        registrations = await self._registrations.list_all()
        payments = {p.payment_reference: p for p in await self._payments.list_all()}

        # Same rule as the access gate minus the course lookup.
        active = sum(
            1
            for r in registrations
            if now <= r.access_expires_at
            and effective_payment_status(r, payments.get(r.payment_id)) == "completed"
        )

        revenue: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        counts: dict[str, int] = defaultdict(int)
        for payment in payments.values():
            if payment.status == "completed":
                revenue[payment.course_id] += payment.amount
        for r in registrations:
            counts[r.course_id] += 1

        per_course = [
            CourseRevenue(
                course_id=c.id,
                title=c.title,
                registrations=counts.get(c.id, 0),
                revenue=revenue.get(c.id, Decimal("0")),
            )
            for c in courses
        ]
        per_course.sort(key=lambda row: row.revenue, reverse=True)

        return AnalyticsOverview(
            courses=len(courses),
            users=len(users),
            registrations=len(registrations),
            active_entitlements=active,
            payments=await self._payment_service.payment_statistics(),
            revenue_by_course=per_course,
        )
