"""Module-level service singletons wired to the process repositories."""

from __future__ import annotations

from coursegate.core.config import SETTINGS
from coursegate.db.locks import registration_lock
from coursegate.repos.repositories import (
    course_repo,
    material_repo,
    payment_repo,
    registration_repo,
    user_repo,
)
from coursegate.services.analytics_service import AnalyticsService
from coursegate.services.catalog_service import CourseService, MaterialService
from coursegate.services.entitlement_service import EntitlementService
from coursegate.services.payment_providers import build_providers
from coursegate.services.payment_service import PaymentService
from coursegate.services.users_service import UsersService

payment_providers = build_providers(latency_scale=SETTINGS.provider_latency_scale)

users_service = UsersService(users=user_repo, registrations=registration_repo)
course_service = CourseService(courses=course_repo)
material_service = MaterialService(courses=course_repo, materials=material_repo)
entitlement_service = EntitlementService(
    courses=course_repo,
    registrations=registration_repo,
    payments=payment_repo,
    materials=material_repo,
)
payment_service = PaymentService(
    courses=course_repo,
    payments=payment_repo,
    registrations=registration_repo,
    users=user_repo,
    providers=payment_providers,
    lock=registration_lock,
)
analytics_service = AnalyticsService(
    courses=course_repo,
    users=user_repo,
    registrations=registration_repo,
    payments=payment_repo,
    payment_service=payment_service,
)
