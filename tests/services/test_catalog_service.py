from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from coursegate.core.errors import NotFoundError
from coursegate.repos.repositories import course_repo, material_repo, registration_repo
from coursegate.services.catalog_service import CourseService, MaterialService
from tests.conftest import create_course, create_material

_VALID_COURSE = {
    "title": "Intro to APIs",
    "description": "HTTP from first principles",
    "price": Decimal("25.00"),
    "duration": 12,
    "access_period": 4,
    "instructor": "Jane Doe",
    "category": "Programming",
    "level": "Beginner",
}

_VALID_MATERIAL = {
    "title": "Notes",
    "description": "Week 1",
    "type": "PDF",
    "content": "https://cdn.example.com/notes.pdf",
}

courses = CourseService(courses=course_repo)
materials = MaterialService(courses=course_repo, materials=material_repo)


# ---- course service ----


def test_create_and_get_course() -> None:
    created = asyncio.run(courses.create_course(dict(_VALID_COURSE)))
    fetched = asyncio.run(courses.get_course(created.id))
    assert fetched.title == "Intro to APIs"
    assert fetched.price == Decimal("25.00")
    assert fetched.created_at is not None


def test_update_course_changes_only_given_fields() -> None:
    course = create_course()
    updated = asyncio.run(courses.update_course(course.id, {"access_period": 8}))
    assert updated.access_period == 8
    assert updated.title == course.title


def test_update_missing_course_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(courses.update_course("missing", {"title": "x"}))


def test_delete_course_does_not_cascade() -> None:
    course = create_course()
    create_material(course.id)

    asyncio.run(courses.delete_course(course.id))

    with pytest.raises(NotFoundError):
        asyncio.run(courses.get_course(course.id))
    assert len(asyncio.run(material_repo.list_by_course(course.id))) == 1
    assert asyncio.run(registration_repo.list_by_course(course.id)) == []


def test_delete_missing_course_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(courses.delete_course("missing"))


# ---- material service ----


def test_create_material_requires_existing_course() -> None:
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(materials.create_material("missing", dict(_VALID_MATERIAL)))
    assert exc_info.value.code == "course_not_found"


def test_create_material_applies_defaults() -> None:
    course = create_course()
    material = asyncio.run(materials.create_material(course.id, dict(_VALID_MATERIAL)))
    assert material.order == 0
    assert material.is_published is True


def test_admin_listing_includes_drafts() -> None:
    course = create_course()
    create_material(course.id, is_published=False)
    create_material(course.id)
    assert len(asyncio.run(materials.list_for_admin(course.id))) == 2


def test_update_material_can_unpublish() -> None:
    course = create_course()
    material = create_material(course.id)
    updated = asyncio.run(materials.update_material(material.id, {"is_published": False}))
    assert updated.is_published is False


def test_delete_material() -> None:
    course = create_course()
    material = create_material(course.id)
    asyncio.run(materials.delete_material(material.id))
    with pytest.raises(NotFoundError):
        asyncio.run(materials.get_material(material.id))


def test_empty_update_returns_course_unchanged() -> None:
    course = create_course()
    result = asyncio.run(courses.update_course(course.id, {}))
    assert (result.id, result.title) == (course.id, course.title)


def test_empty_update_of_missing_material_is_not_found() -> None:
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(materials.update_material("missing", {}))
    assert exc_info.value.code == "material_not_found"
