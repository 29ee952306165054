"""Request and response schemas shared by the routers.

Every successful response is wrapped in ``Envelope[T]``:

  {"success": true, "message": "...", "data": T}

Errors use the shape rendered by coursegate.api.errors.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Generic, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    model_validator,
)

from coursegate.core.config import SETTINGS
from coursegate.models.access import AccessDecision, MaterialListing, MaterialView, MaterialViewer
from coursegate.models.course import Course, CourseLevel
from coursegate.models.material import Material, MaterialType
from coursegate.models.payment import Payment, PaymentStats
from coursegate.models.registration import Registration
from coursegate.services.analytics_service import AnalyticsOverview

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T


def ok(data: Any, message: str | None = None) -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}


# --- Auth --------------------------------------------------------------------


class SignupIn(BaseModel):
    name: str
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: str


class AuthOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class ProfileOut(UserOut):
    registered_courses: list[str]


# --- Catalog -----------------------------------------------------------------


def _check_category(value: str) -> str:
    allowed = SETTINGS.course_categories
    if value not in allowed:
        raise ValueError(f"Invalid category. Must be one of: {', '.join(allowed)}")
    return value


Text = Annotated[str, Field(min_length=1)]
Price = Annotated[Decimal, Field(ge=0, allow_inf_nan=False)]
Weeks = Annotated[StrictInt, Field(gt=0)]
Category = Annotated[str, AfterValidator(_check_category)]


class _WriteModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class _PartialWriteModel(_WriteModel):
    """Partial update: leaving a field out keeps it, sending ``null`` is an error."""

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulls = sorted(k for k, v in data.items() if v is None)
            if nulls:
                raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return data

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CourseIn(_WriteModel):
    title: Text
    description: Text
    price: Price
    duration: Weeks
    access_period: Weeks
    instructor: Text
    category: Category
    level: CourseLevel


class CourseUpdateIn(_PartialWriteModel):
    title: Text | None = None
    description: Text | None = None
    price: Price | None = None
    duration: Weeks | None = None
    access_period: Weeks | None = None
    instructor: Text | None = None
    category: Category | None = None
    level: CourseLevel | None = None


class MaterialIn(_WriteModel):
    title: Text
    description: Text
    type: MaterialType
    content: Text
    order: StrictInt = 0
    is_published: StrictBool = True


class MaterialUpdateIn(_PartialWriteModel):
    title: Text | None = None
    description: Text | None = None
    type: MaterialType | None = None
    content: Text | None = None
    order: StrictInt | None = None
    is_published: StrictBool | None = None


class CourseOut(BaseModel):
    id: str
    title: str
    description: str
    price: Decimal
    duration: int
    access_period: int
    instructor: str
    category: str
    level: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def of(cls, course: Course) -> CourseOut:
        return cls(
            id=course.id,
            title=course.title,
            description=course.description,
            price=course.price,
            duration=course.duration,
            access_period=course.access_period,
            instructor=course.instructor,
            category=course.category,
            level=course.level,
            created_at=course.created_at,
            updated_at=course.updated_at,
        )


class MaterialOut(BaseModel):
    """Admin view: raw content included."""

    id: str
    course_id: str
    title: str
    description: str
    type: str
    content: str
    order: int
    is_published: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def of(cls, material: Material) -> MaterialOut:
        return cls(
            id=material.id,
            course_id=material.course_id,
            title=material.title,
            description=material.description,
            type=material.type,
            content=material.content,
            order=material.order,
            is_published=material.is_published,
            created_at=material.created_at,
            updated_at=material.updated_at,
        )


class MaterialViewOut(BaseModel):
    id: str
    course_id: str
    title: str
    description: str
    type: str
    order: int
    is_published: bool
    access_url: str
    content_control: str

    @classmethod
    def of(cls, view: MaterialView) -> MaterialViewOut:
        return cls(
            id=view.id,
            course_id=view.course_id,
            title=view.title,
            description=view.description,
            type=view.type,
            order=view.order,
            is_published=view.is_published,
            access_url=view.access_url,
            content_control=view.content_control,
        )


class MaterialListingOut(BaseModel):
    course_id: str
    materials: list[MaterialViewOut]
    access_expires_at: datetime | None = None

    @classmethod
    def of(cls, listing: MaterialListing) -> MaterialListingOut:
        return cls(
            course_id=listing.course_id,
            materials=[MaterialViewOut.of(v) for v in listing.materials],
            access_expires_at=listing.expires_at,
        )


class MaterialViewerOut(BaseModel):
    material_id: str
    title: str
    description: str
    type: str
    content_control: str
    watermark: str
    body: str | None = None
    redirect_url: str | None = None
    access_expires_at: datetime | None = None

    @classmethod
    def of(cls, viewer: MaterialViewer) -> MaterialViewerOut:
        return cls(
            material_id=viewer.material_id,
            title=viewer.title,
            description=viewer.description,
            type=viewer.type,
            content_control=viewer.content_control,
            watermark=viewer.watermark,
            body=viewer.body,
            redirect_url=viewer.redirect_url,
            access_expires_at=viewer.expires_at,
        )


class AccessOut(BaseModel):
    course_id: str
    allowed: bool
    reason: str
    access_expires_at: datetime | None = None

    @classmethod
    def of(cls, course_id: str, decision: AccessDecision) -> AccessOut:
        return cls(
            course_id=course_id,
            allowed=decision.allowed,
            reason=decision.reason,
            access_expires_at=decision.expires_at,
        )


# --- Payments ----------------------------------------------------------------


class PaymentIn(BaseModel):
    course_id: str
    payment_method: str
    payment_details: dict[str, Any] = Field(default_factory=dict)


class PaymentOut(BaseModel):
    id: str
    user_id: str
    course_id: str
    amount: Decimal
    payment_method: str
    payment_reference: str
    status: str
    transaction_id: str | None = None
    provider_reference: str | None = None
    refunded_at: datetime | None = None
    refunded_by: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def of(cls, payment: Payment) -> PaymentOut:
        return cls(
            id=payment.id,
            user_id=payment.user_id,
            course_id=payment.course_id,
            amount=payment.amount,
            payment_method=payment.payment_method,
            payment_reference=payment.payment_reference,
            status=payment.status,
            transaction_id=payment.transaction_id,
            provider_reference=payment.provider_reference,
            refunded_at=payment.refunded_at,
            refunded_by=payment.refunded_by,
            metadata=payment.metadata,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class RegistrationOut(BaseModel):
    id: str
    user_id: str
    course_id: str
    payment_id: str
    payment_status: str
    payment_amount: Decimal
    access_expires_at: datetime
    created_at: datetime | None = None

    @classmethod
    def of(cls, registration: Registration) -> RegistrationOut:
        return cls(
            id=registration.id,
            user_id=registration.user_id,
            course_id=registration.course_id,
            payment_id=registration.payment_id,
            payment_status=registration.payment_status,
            payment_amount=registration.payment_amount,
            access_expires_at=registration.access_expires_at,
            created_at=registration.created_at,
        )


class PurchaseOut(BaseModel):
    payment: PaymentOut
    registration: RegistrationOut


class PaymentStatsOut(BaseModel):
    total: int
    by_status: dict[str, int]
    by_method: dict[str, int]
    completed_amount: Decimal

    @classmethod
    def of(cls, stats: PaymentStats) -> PaymentStatsOut:
        return cls(
            total=stats.total,
            by_status=stats.by_status,
            by_method=stats.by_method,
            completed_amount=stats.completed_amount,
        )


class ReconcileOut(BaseModel):
    failed: list[PaymentOut]


# --- Admin analytics ---------------------------------------------------------


class CourseRevenueOut(BaseModel):
    course_id: str
    title: str
    registrations: int
    revenue: Decimal


class AnalyticsOut(BaseModel):
    courses: int
    users: int
    registrations: int
    active_entitlements: int
    payments: PaymentStatsOut
    revenue_by_course: list[CourseRevenueOut]

    @classmethod
    def of(cls, overview: AnalyticsOverview) -> AnalyticsOut:
        return cls(
            courses=overview.courses,
            users=overview.users,
            registrations=overview.registrations,
            active_entitlements=overview.active_entitlements,
            payments=PaymentStatsOut.of(overview.payments),
            revenue_by_course=[
                CourseRevenueOut(
                    course_id=row.course_id,
                    title=row.title,
                    registrations=row.registrations,
                    revenue=row.revenue,
                )
                for row in overview.revenue_by_course
            ],
        )
