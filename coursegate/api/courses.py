"""Course catalog (public reads, admin writes) and the per-course access check."""

from __future__ import annotations

from fastapi import APIRouter, status

from coursegate.api.dependencies import AdminUser, CurrentUser
from coursegate.api.schemas import (
    AccessOut,
    CourseIn,
    CourseOut,
    CourseUpdateIn,
    Envelope,
    ok,
)
from coursegate.services.registry import course_service, entitlement_service

router = APIRouter(prefix="/v1/courses", tags=["courses"])


@router.get("", response_model=Envelope[list[CourseOut]])
async def list_courses() -> dict:
    courses = await course_service.list_courses()
    return ok([CourseOut.of(c) for c in courses])


@router.get("/{course_id}", response_model=Envelope[CourseOut])
async def get_course(course_id: str) -> dict:
    return ok(CourseOut.of(await course_service.get_course(course_id)))


@router.post(
    "", response_model=Envelope[CourseOut], status_code=status.HTTP_201_CREATED
)
async def create_course(payload: CourseIn, _admin: AdminUser) -> dict:
    course = await course_service.create_course(payload.model_dump())
    return ok(CourseOut.of(course), "Course created")


@router.put("/{course_id}", response_model=Envelope[CourseOut])
async def update_course(
    course_id: str, payload: CourseUpdateIn, _admin: AdminUser
) -> dict:
    course = await course_service.update_course(course_id, payload.changes())
    return ok(CourseOut.of(course), "Course updated")


@router.delete("/{course_id}", response_model=Envelope[None])
async def delete_course(course_id: str, _admin: AdminUser) -> dict:
    await course_service.delete_course(course_id)
    return ok(None, "Course deleted")


@router.get("/{course_id}/access", response_model=Envelope[AccessOut])
async def check_access(course_id: str, principal: CurrentUser) -> dict:
    """Report the gate's decision without raising on a denial."""
    decision = await entitlement_service.check_access(principal.user_id, course_id)
    return ok(AccessOut.of(course_id, decision))
