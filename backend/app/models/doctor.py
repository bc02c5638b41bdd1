"""
Doctor Schemas
==============
A doctor is a ``users`` row with role ``doctor`` plus one ``doctors`` row
(same id) holding the professional profile and the patient list.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.models.user import Pagination, validate_phone

_TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


class Specialization(str, Enum):
    PSYCHIATRY = "psychiatry"
    PSYCHOLOGY = "psychology"
    CLINICAL_PSYCHOLOGY = "clinical_psychology"
    COUNSELING = "counseling"
    THERAPY = "therapy"
    MENTAL_HEALTH = "mental_health"
    BEHAVIORAL_HEALTH = "behavioral_health"


class AvailableSlot(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday.")
    start_time: str = Field(..., description="HH:MM, 24h.")
    end_time: str = Field(..., description="HH:MM, 24h.")

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v: str) -> str:
        if not _TIME_RE.match(v):
            raise ValueError("Time must be in HH:MM format")
        return v

    @model_validator(mode="after")
    def _ordered(self) -> AvailableSlot:
        start = tuple(int(p) for p in self.start_time.split(":"))
        end = tuple(int(p) for p in self.end_time.split(":"))
        if end <= start:
            raise ValueError("end_time must be after start_time")
        return self


class Education(BaseModel):
    degree: str = Field(..., min_length=1)
    institution: str = Field(..., min_length=1)
    year: int = Field(..., ge=1900, le=2100)


class _DoctorFields(BaseModel):
    """Profile fields shared by create and update."""

    bio: Optional[str] = Field(default=None, max_length=1000)
    consultation_fee: Optional[float] = Field(default=None, ge=0)
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    phone_number: Optional[str] = None
    available_slots: Optional[list[AvailableSlot]] = None
    languages: Optional[list[str]] = None
    education: Optional[list[Education]] = None

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, v: Optional[str]) -> Optional[str]:
        return validate_phone(v)


class DoctorCreate(_DoctorFields):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    specialization: list[Specialization] = Field(..., min_length=1)
    license_number: str = Field(..., min_length=1)
    years_of_experience: int = Field(..., ge=0)
    is_verified: bool = False

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class DoctorUpdate(_DoctorFields):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    specialization: Optional[list[Specialization]] = Field(default=None, min_length=1)
    license_number: Optional[str] = Field(default=None, min_length=1)
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    is_verified: Optional[bool] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    total_consultations: Optional[int] = Field(default=None, ge=0)


class DoctorResponse(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str = ""
    avatar: Optional[str] = None
    specialization: list[Specialization] = Field(default_factory=list)
    license_number: str
    years_of_experience: int = 0
    bio: Optional[str] = None
    consultation_fee: Optional[float] = None
    is_verified: bool = False
    clinic_name: Optional[str] = None
    clinic_address: Optional[str] = None
    phone_number: Optional[str] = None
    available_slots: list[AvailableSlot] = Field(default_factory=list)
    patients: list[str] = Field(default_factory=list)
    rating: Optional[float] = None
    total_consultations: int = 0
    languages: list[str] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "specialization", "available_slots", "patients", "languages", "education",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, v):
        return v or []

    @model_validator(mode="after")
    def _full_name(self) -> DoctorResponse:
        self.full_name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return self


class DoctorListResponse(BaseModel):
    doctors: list[DoctorResponse]
    pagination: Pagination
