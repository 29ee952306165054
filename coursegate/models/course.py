from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Literal
from uuid import uuid4

CourseLevel = Literal["Beginner", "Intermediate", "Advanced"]


@dataclass(frozen=True, slots=True)
class Course:
    id: str
    title: str
    description: str
    price: Decimal
    duration: int  # weeks of teaching
    access_period: int  # extra weeks of review access after the teaching window
    instructor: str
    category: str  # validated against SETTINGS.course_categories
    level: str  # Beginner|Intermediate|Advanced
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def access_window(self) -> timedelta:
        """How long a registration grants access: duration + access_period weeks."""
        return timedelta(weeks=self.duration + self.access_period)

    @staticmethod
    def new(
        *,
        title: str,
        description: str,
        price: Decimal,
        duration: int,
        access_period: int,
        instructor: str,
        category: str,
        level: str,
    ) -> Course:
        return Course(
            id=str(uuid4()),
            title=title,
            description=description,
            price=price,
            duration=duration,
            access_period=access_period,
            instructor=instructor,
            category=category,
            level=level,
        )
