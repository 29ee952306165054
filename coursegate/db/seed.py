"""Development seed data: one admin account plus a small sample catalog.

Runs at startup in dev only, and only against an empty courses collection,
so restarting against a JSON or SQL store does not duplicate anything.
The admin account is created only when SEED_ADMIN_PASSWORD is set.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from coursegate.core.config import SETTINGS
from coursegate.models.course import Course
from coursegate.models.material import Material
from coursegate.models.user import User
from coursegate.repos.repositories import course_repo, material_repo, user_repo
from coursegate.services import auth_service

logger = logging.getLogger(__name__)

_SAMPLE_CATALOG = [
    {
        "course": dict(
            title="Python for Web APIs",
            description="Build and deploy HTTP services with FastAPI.",
            price=Decimal("49.99"),
            duration=8,
            access_period=4,
            instructor="A. Mbarga",
            category="Programming",
            level="Beginner",
        ),
        "materials": [
            dict(title="Course handbook", description="Syllabus and setup",
                 type="PDF", content="https://cdn.example.com/python-apis/handbook.pdf", order=1),
            dict(title="Routing and validation", description="Lecture recording",
                 type="Video", content="https://cdn.example.com/python-apis/lecture-1.mp4", order=2),
            dict(title="Further reading", description="Official documentation",
                 type="Link", content="https://fastapi.tiangolo.com/", order=3),
        ],
    },
    {
        "course": dict(
            title="Brand Design Fundamentals",
            description="Logos, palettes and type systems for small brands.",
            price=Decimal("29.00"),
            duration=4,
            access_period=2,
            instructor="N. Fotso",
            category="Design",
            level="Intermediate",
        ),
        "materials": [
            dict(title="Welcome", description="Start here",
                 type="HTML", content="<h1>Welcome</h1><p>Read this first.</p>", order=1),
            dict(title="Palette exercise", description="Draft, not yet released",
                 type="PDF", content="https://cdn.example.com/brand/palette.pdf",
                 order=2, is_published=False),
        ],
    },
]


async def seed_dev_data() -> None:
    if SETTINGS.seed_admin_password and await user_repo.get_by_email(
        SETTINGS.seed_admin_email
    ) is None:
        await user_repo.add(
            User.new(
                name="Administrator",
                email=SETTINGS.seed_admin_email,
                password_hash=auth_service.hash_password(SETTINGS.seed_admin_password),
                role="admin",
            )
        )
        logger.info("Seeded admin user email=%s", SETTINGS.seed_admin_email)

    if await course_repo.list_all():
        return

    for entry in _SAMPLE_CATALOG:
        course = await course_repo.add(Course.new(**entry["course"]))
        for fields in entry["materials"]:
            await material_repo.add(Material.new(course_id=course.id, **fields))
    logger.info("Seeded %d sample courses", len(_SAMPLE_CATALOG))
