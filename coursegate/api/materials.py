"""Course materials.

Learners only ever see view-only descriptors (access_url instead of raw
content) and only after the entitlement gate allows them. The /admin and
write routes return the raw records.
"""

from __future__ import annotations

from fastapi import APIRouter, status

from coursegate.api.dependencies import AdminUser, CurrentUser
from coursegate.api.schemas import (
    Envelope,
    MaterialIn,
    MaterialListingOut,
    MaterialOut,
    MaterialUpdateIn,
    MaterialViewerOut,
    ok,
)
from coursegate.services.registry import entitlement_service, material_service

router = APIRouter(prefix="/v1/materials", tags=["materials"])


@router.get("/view/{material_id}", response_model=Envelope[MaterialViewerOut])
async def view_material(material_id: str, principal: CurrentUser) -> dict:
    viewer = await entitlement_service.view_material(principal, material_id)
    return ok(MaterialViewerOut.of(viewer))


@router.get("/admin/{course_id}", response_model=Envelope[list[MaterialOut]])
async def list_course_materials_admin(course_id: str, _admin: AdminUser) -> dict:
    materials = await material_service.list_for_admin(course_id)
    return ok([MaterialOut.of(m) for m in materials])


@router.put("/item/{material_id}", response_model=Envelope[MaterialOut])
async def update_material(
    material_id: str, payload: MaterialUpdateIn, _admin: AdminUser
) -> dict:
    material = await material_service.update_material(material_id, payload.changes())
    return ok(MaterialOut.of(material), "Material updated")


@router.delete("/item/{material_id}", response_model=Envelope[None])
async def delete_material(material_id: str, _admin: AdminUser) -> dict:
    await material_service.delete_material(material_id)
    return ok(None, "Material deleted")


@router.get("/{course_id}", response_model=Envelope[MaterialListingOut])
async def list_course_materials(course_id: str, principal: CurrentUser) -> dict:
    listing = await entitlement_service.list_entitled_materials(principal, course_id)
    return ok(MaterialListingOut.of(listing))


@router.post(
    "/{course_id}",
    response_model=Envelope[MaterialOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_material(
    course_id: str, payload: MaterialIn, _admin: AdminUser
) -> dict:
    material = await material_service.create_material(course_id, payload.model_dump())
    return ok(MaterialOut.of(material), "Material created")
