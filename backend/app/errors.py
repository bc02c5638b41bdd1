"""
Error Catalogue
===============
Every error the API returns on purpose. Each class is an HTTPException
with a fixed status code and a machine-readable ``code``; the response
body is always::

    {"detail": {"message": "...", "code": "...", ...extra}}

Routers and services raise these directly. Anything else that escapes a
request is caught by the handler in ``app.main`` and reported as a 500
``internal_error``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class: subclasses set ``status_code``, ``code`` and ``message``."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    message: str = "Something went wrong"

    def __init__(self, message: Optional[str] = None, **extra: Any) -> None:
        detail = {"message": message or self.message, "code": self.code, **extra}
        super().__init__(status_code=self.status_code, detail=detail)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class AuthRequiredError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_required"
    message = "Missing or invalid authorization header"


class AuthInvalidError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "auth_invalid"
    message = "Invalid or expired token"


class InvalidCredentialsError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_credentials"
    message = "Invalid email or password"


class EmailAlreadyExistsError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "email_exists"
    message = "Email already in use"

    def __init__(self, email: Optional[str] = None) -> None:
        super().__init__(f"Email {email} is already in use" if email else None)


class InsufficientPermissionsError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "insufficient_permissions"
    message = "Insufficient permissions"

    def __init__(
        self,
        required: Optional[list[str]] = None,
        current: Optional[str] = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if required is not None:
            extra["required"] = required
        if current is not None:
            extra["current"] = current
        super().__init__(**extra)


# ---------------------------------------------------------------------------
# Users & doctors
# ---------------------------------------------------------------------------

class UserNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "user_not_found"
    message = "User profile not found"


class InvalidCurrentPasswordError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_current_password"
    message = "Current password is incorrect"


class CannotDeleteSelfError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "cannot_delete_self"
    message = "Cannot delete your own account through this endpoint"


class DoctorNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "doctor_not_found"
    message = "Doctor not found"


class DoctorAlreadyExistsError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "doctor_exists"
    message = "Doctor already exists"


class InvalidAvatarError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_avatar"
    message = "Only image files up to 5 MB are allowed"


class AvatarUploadError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "avatar_upload_failed"
    message = "Avatar upload failed"


# ---------------------------------------------------------------------------
# Emotions & streaks
# ---------------------------------------------------------------------------

class EmotionNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "emotion_not_found"
    message = "Emotion entry not found"


class InvalidEmotionDataError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_emotion_data"
    message = "Invalid emotion data"


class InvalidIntensityLevelError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_intensity"
    message = "Invalid intensity level"


class InvalidFiltersError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_filters"
    message = "Invalid filters"


class StreakNotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "streak_not_found"
    message = "Streak not found for user"


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------

class DatabaseError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "db_error"
    message = "Database operation failed"
