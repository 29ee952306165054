from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import uuid4

MaterialType = Literal["PDF", "Video", "HTML", "Link", "Other"]

# Types rendered by the protected viewer; the rest are plain outbound links.
VIEWER_TYPES: frozenset[str] = frozenset({"PDF", "Video", "HTML"})


@dataclass(frozen=True, slots=True)
class Material:
    id: str
    course_id: str
    title: str
    description: str
    type: str  # PDF|Video|HTML|Link|Other
    content: str  # URL, or embedded HTML for type=HTML
    order: int = 0
    is_published: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def uses_viewer(self) -> bool:
        return self.type in VIEWER_TYPES

    @staticmethod
    def new(
        *,
        course_id: str,
        title: str,
        description: str,
        type: str,
        content: str,
        order: int = 0,
        is_published: bool = True,
    ) -> Material:
        return Material(
            id=str(uuid4()),
            course_id=course_id,
            title=title,
            description=description,
            type=type,
            content=content,
            order=order,
            is_published=is_published,
        )
