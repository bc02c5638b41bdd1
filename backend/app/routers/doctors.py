"""
Doctors Router
==============
Doctor directory and patient assignment. Every route requires a valid
bearer token; writes are limited to admins and the doctor themselves.

POST   /api/v1/doctors                                   admin
GET    /api/v1/doctors
GET    /api/v1/doctors/search?query=
GET    /api/v1/doctors/specialization/{specialization}
GET    /api/v1/doctors/{doctor_id}
PUT    /api/v1/doctors/{doctor_id}                       admin or that doctor
DELETE /api/v1/doctors/{doctor_id}                       admin
POST   /api/v1/doctors/{doctor_id}/patients/{patient_id} admin or that doctor
DELETE /api/v1/doctors/{doctor_id}/patients/{patient_id} admin or that doctor
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import APIRouter, Header, Query, status

from app.auth import ensure_self_or_admin, get_authenticated_user, require_role
from app.db.supabase import get_supabase_client
from app.errors import InvalidFiltersError
from app.models.doctor import (
    DoctorCreate,
    DoctorListResponse,
    DoctorResponse,
    DoctorUpdate,
    Specialization,
)
from app.models.user import DeletedResponse, Pagination, UserRole
from app.services.doctors import DoctorService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/doctors", tags=["doctors"])


@router.post(
    "",
    response_model=DoctorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a doctor account (admin)",
    responses={409: {"description": "Email or license number already in use"}},
)
async def create_doctor(
    body: DoctorCreate,
    authorization: Optional[str] = Header(default=None),
) -> DoctorResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    require_role(user, [UserRole.ADMIN])

    doctor = DoctorService(db).create(body)
    logger.info("Admin %s created doctor %s", user["id"], doctor["id"])
    return DoctorResponse(**doctor)


@router.get("", response_model=DoctorListResponse, summary="List doctors")
async def list_doctors(
    specialization: Optional[Specialization] = Query(None),
    is_verified: Optional[bool] = Query(None),
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    authorization: Optional[str] = Header(default=None),
) -> DoctorListResponse:
    db = get_supabase_client()
    get_authenticated_user(authorization, db)

    rows, total = DoctorService(db).list(
        specialization=specialization,
        is_verified=is_verified,
        min_rating=min_rating,
        page=page,
        limit=limit,
    )
    return DoctorListResponse(
        doctors=[DoctorResponse(**row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/search", response_model=list[DoctorResponse], summary="Search verified doctors by name")
async def search_doctors(
    query: str = Query("", max_length=100),
    authorization: Optional[str] = Header(default=None),
) -> list[DoctorResponse]:
    db = get_supabase_client()
    get_authenticated_user(authorization, db)

    if not query.strip():
        raise InvalidFiltersError("Search query is required")
    return [DoctorResponse(**row) for row in DoctorService(db).search(query)]


@router.get(
    "/specialization/{specialization}",
    response_model=list[DoctorResponse],
    summary="Verified doctors with a specialization",
)
async def doctors_by_specialization(
    specialization: Specialization,
    authorization: Optional[str] = Header(default=None),
) -> list[DoctorResponse]:
    db = get_supabase_client()
    get_authenticated_user(authorization, db)
    return [DoctorResponse(**row) for row in DoctorService(db).by_specialization(specialization)]


@router.get("/{doctor_id}", response_model=DoctorResponse, summary="Get a doctor")
async def get_doctor(doctor_id: str, authorization: Optional[str] = Header(default=None)) -> DoctorResponse:
    db = get_supabase_client()
    get_authenticated_user(authorization, db)
    return DoctorResponse(**DoctorService(db).require(doctor_id))


@router.put("/{doctor_id}", response_model=DoctorResponse, summary="Update a doctor profile")
async def update_doctor(
    doctor_id: str,
    body: DoctorUpdate,
    authorization: Optional[str] = Header(default=None),
) -> DoctorResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_self_or_admin(user, doctor_id)

    changes = body.model_dump(exclude_unset=True)
    # Verification and rating are managed by admins only
    if user.get("role") != UserRole.ADMIN.value and {"is_verified", "rating"} & changes.keys():
        require_role(user, [UserRole.ADMIN])

    return DoctorResponse(**DoctorService(db).update(doctor_id, body))


@router.delete("/{doctor_id}", response_model=DeletedResponse, summary="Delete a doctor (admin)")
async def delete_doctor(doctor_id: str, authorization: Optional[str] = Header(default=None)) -> DeletedResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    require_role(user, [UserRole.ADMIN])

    DoctorService(db).delete(doctor_id)
    logger.info("Admin %s deleted doctor %s", user["id"], doctor_id)
    return DeletedResponse(message="Doctor deleted", id=doctor_id)


@router.post(
    "/{doctor_id}/patients/{patient_id}",
    response_model=DoctorResponse,
    summary="Assign a patient to a doctor",
)
async def add_patient(
    doctor_id: str,
    patient_id: str,
    authorization: Optional[str] = Header(default=None),
) -> DoctorResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_self_or_admin(user, doctor_id)
    return DoctorResponse(**DoctorService(db).add_patient(doctor_id, patient_id))


@router.delete(
    "/{doctor_id}/patients/{patient_id}",
    response_model=DoctorResponse,
    summary="Remove a patient from a doctor",
)
async def remove_patient(
    doctor_id: str,
    patient_id: str,
    authorization: Optional[str] = Header(default=None),
) -> DoctorResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_self_or_admin(user, doctor_id)
    return DoctorResponse(**DoctorService(db).remove_patient(doctor_id, patient_id))
