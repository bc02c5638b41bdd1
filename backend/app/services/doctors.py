"""
Doctor Service
==============
Doctor profiles in the ``doctors`` table, joined with the doctor's
``users`` row for names, email and avatar.

Creating a doctor creates three things in order: a Supabase Auth
account, a ``users`` row with role ``doctor`` and the ``doctors`` row.
The patient list is a plain array of user ids with set semantics.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.errors import (
    DatabaseError,
    DoctorAlreadyExistsError,
    DoctorNotFoundError,
    EmailAlreadyExistsError,
    UserNotFoundError,
)
from app.models.doctor import DoctorCreate, DoctorUpdate, Specialization
from app.models.user import UserRole
from app.services.users import UserService, search_term

logger = logging.getLogger(__name__)

_TABLE = "doctors"
_SELECT = "*, users(email, first_name, last_name, avatar)"
_USER_FIELDS = ("first_name", "last_name")


def _flatten(row: dict) -> dict:
    profile = row.pop("users", None) or {}
    return {**row, **{k: v for k, v in profile.items() if k not in row}}


class DoctorService:

    def __init__(self, db: Client) -> None:
        self._db = db
        self._users = UserService(db)

    def get(self, doctor_id: str) -> Optional[dict]:
        result = self._db.table(_TABLE).select(_SELECT).eq("id", doctor_id).limit(1).execute()
        return _flatten(result.data[0]) if result.data else None

    def require(self, doctor_id: str) -> dict:
        doctor = self.get(doctor_id)
        if doctor is None:
            raise DoctorNotFoundError()
        return doctor

    def license_taken(self, license_number: str, exclude_id: Optional[str] = None) -> bool:
        result = (
            self._db.table(_TABLE)
            .select("id")
            .eq("license_number", license_number)
            .limit(1)
            .execute()
        )
        return bool(result.data) and result.data[0]["id"] != exclude_id

    # ------------------------------------------------------------------
    # Create / update / delete
    # ------------------------------------------------------------------

    def create(self, payload: DoctorCreate) -> dict:
        if self._users.email_taken(payload.email):
            raise EmailAlreadyExistsError(payload.email)
        if self.license_taken(payload.license_number):
            raise DoctorAlreadyExistsError(
                f"A doctor with license {payload.license_number} already exists"
            )

        doctor_id = self._users.create_account(payload.email, payload.password, UserRole.DOCTOR)
        self._users.create_profile(
            doctor_id,
            payload.email,
            role=UserRole.DOCTOR,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )

        row = payload.model_dump(
            mode="json",
            exclude={"email", "password", "first_name", "last_name"},
        )
        row.update({"id": doctor_id, "patients": [], "total_consultations": 0})
        result = self._db.table(_TABLE).insert(row).execute()
        if not result.data:
            logger.error("Failed to insert doctor row for %s", doctor_id)
            raise DatabaseError("Failed to create doctor")

        logger.info("Doctor %s created", doctor_id)
        return self.require(doctor_id)

    def update(self, doctor_id: str, payload: DoctorUpdate) -> dict:
        self.require(doctor_id)
        changes = payload.model_dump(mode="json", exclude_unset=True)

        license_number = changes.get("license_number")
        if license_number and self.license_taken(license_number, exclude_id=doctor_id):
            raise DoctorAlreadyExistsError(f"A doctor with license {license_number} already exists")

        user_changes = {k: changes.pop(k) for k in _USER_FIELDS if k in changes}
        if user_changes:
            self._users.update(doctor_id, user_changes)
        if changes:
            changes["updated_at"] = datetime.now(timezone.utc).isoformat()
            self._db.table(_TABLE).update(changes).eq("id", doctor_id).execute()

        return self.require(doctor_id)

    def delete(self, doctor_id: str) -> dict:
        doctor = self.require(doctor_id)
        self._users.delete(doctor_id)
        return doctor

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(
        self,
        specialization: Optional[Specialization] = None,
        is_verified: Optional[bool] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict], int]:
        query = self._db.table(_TABLE).select(_SELECT, count="exact")
        if specialization:
            query = query.contains("specialization", [specialization.value])
        if is_verified is not None:
            query = query.eq("is_verified", is_verified)
        if min_rating is not None:
            query = query.gte("rating", min_rating)

        offset = (page - 1) * limit
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        rows = [_flatten(r) for r in result.data or []]
        return rows, result.count if result.count is not None else len(rows)

    def search(self, term: str) -> list[dict]:
        """Verified doctors whose first or last name contains ``term``."""
        term = search_term(term)
        matches = (
            self._db.table("users")
            .select("id")
            .eq("role", UserRole.DOCTOR.value)
            .or_(f"first_name.ilike.%{term}%,last_name.ilike.%{term}%")
            .execute()
        )
        ids = [row["id"] for row in matches.data or []]
        if not ids:
            return []

        result = (
            self._db.table(_TABLE)
            .select(_SELECT)
            .in_("id", ids)
            .eq("is_verified", True)
            .execute()
        )
        return [_flatten(r) for r in result.data or []]

    def by_specialization(self, specialization: Specialization) -> list[dict]:
        result = (
            self._db.table(_TABLE)
            .select(_SELECT)
            .contains("specialization", [specialization.value])
            .eq("is_verified", True)
            .order("rating", desc=True)
            .execute()
        )
        return [_flatten(r) for r in result.data or []]

    # ------------------------------------------------------------------
    # Patients
    # ------------------------------------------------------------------

    def add_patient(self, doctor_id: str, patient_id: str) -> dict:
        doctor = self.require(doctor_id)
        if self._users.get(patient_id) is None:
            raise UserNotFoundError("Patient not found")

        patients = list(doctor.get("patients") or [])
        if patient_id not in patients:
            patients.append(patient_id)
            self._save_patients(doctor_id, patients)
            logger.info("Patient %s assigned to doctor %s", patient_id, doctor_id)
        return self.require(doctor_id)

    def remove_patient(self, doctor_id: str, patient_id: str) -> dict:
        doctor = self.require(doctor_id)
        patients = [p for p in doctor.get("patients") or [] if p != patient_id]
        if len(patients) != len(doctor.get("patients") or []):
            self._save_patients(doctor_id, patients)
            logger.info("Patient %s removed from doctor %s", patient_id, doctor_id)
        return self.require(doctor_id)

    def _save_patients(self, doctor_id: str, patients: list[str]) -> None:
        self._db.table(_TABLE).update({
            "patients": patients,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }).eq("id", doctor_id).execute()
