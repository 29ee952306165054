"""Course and material administration.

Route guards restrict writes to admins and the request models in
``coursegate.api.schemas`` check field shapes and ranges, so this module
only persists and logs. Deletes do not cascade: removing a course leaves its
materials and registrations in place.
"""

from __future__ import annotations

import logging
from typing import Any

from coursegate.core.errors import NotFoundError
from coursegate.models.course import Course
from coursegate.models.material import Material
from coursegate.repos.course_repo import CourseRepo
from coursegate.repos.material_repo import MaterialRepo

logger = logging.getLogger(__name__)


class CourseService:
    def __init__(self, *, courses: CourseRepo) -> None:
        self._courses = courses

    async def list_courses(self) -> list[Course]:
        return await self._courses.list_all()

    async def get_course(self, course_id: str) -> Course:
        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError("Course not found", code="course_not_found")
        return course

    async def create_course(self, fields: dict[str, Any]) -> Course:
        course = await self._courses.add(Course.new(**fields))
        logger.info("Course created  course_id=%s title=%s", course.id, course.title)
        return course

    async def update_course(self, course_id: str, changes: dict[str, Any]) -> Course:
        if not changes:
            return await self.get_course(course_id)
        course = await self._courses.update(course_id, changes)
        if course is None:
            raise NotFoundError("Course not found", code="course_not_found")
        logger.info("Course updated  course_id=%s fields=%s", course_id, sorted(changes))
        return course

    async def delete_course(self, course_id: str) -> None:
        if not await self._courses.delete(course_id):
            raise NotFoundError("Course not found", code="course_not_found")
        logger.info("Course deleted  course_id=%s", course_id)


class MaterialService:
    def __init__(self, *, courses: CourseRepo, materials: MaterialRepo) -> None:
        self._courses = courses
        self._materials = materials

    async def create_material(self, course_id: str, fields: dict[str, Any]) -> Material:
        if await self._courses.get(course_id) is None:
            raise NotFoundError("Course not found", code="course_not_found")
        material = await self._materials.add(Material.new(course_id=course_id, **fields))
        logger.info(
            "Material created  material_id=%s course_id=%s type=%s published=%s",
            material.id,
            course_id,
            material.type,
            material.is_published,
        )
        return material

    async def get_material(self, material_id: str) -> Material:
        material = await self._materials.get(material_id)
        if material is None:
            raise NotFoundError("Material not found", code="material_not_found")
        return material

    async def list_for_admin(self, course_id: str) -> list[Material]:
        """Every material of the course, drafts included, with raw content."""
        if await self._courses.get(course_id) is None:
            raise NotFoundError("Course not found", code="course_not_found")
        return await self._materials.list_by_course(course_id, published_only=False)

    async def update_material(
        self, material_id: str, changes: dict[str, Any]
    ) -> Material:
        if not changes:
            return await self.get_material(material_id)
        material = await self._materials.update(material_id, changes)
        if material is None:
            raise NotFoundError("Material not found", code="material_not_found")
        logger.info("Material updated  material_id=%s fields=%s", material_id, sorted(changes))
        return material

    async def delete_material(self, material_id: str) -> None:
        if not await self._materials.delete(material_id):
            raise NotFoundError("Material not found", code="material_not_found")
        logger.info("Material deleted  material_id=%s", material_id)
