"""
Authentication & Access Control
===============================
Bearer-token verification and the role/ownership checks shared by all
routers.

Tokens are Supabase Auth access tokens. ``get_authenticated_user``
verifies the token with Supabase and returns the matching ``users`` row,
which carries the role used by every permission check.

Access rules:
    - admin: everything
    - doctor: their own data and the data of patients on their list
    - patient: their own data only
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from supabase import Client

from app.db.supabase import get_supabase_client
from app.errors import (
    AuthInvalidError,
    AuthRequiredError,
    InsufficientPermissionsError,
    UserNotFoundError,
)
from app.models.user import UserRole

logger = logging.getLogger(__name__)


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthRequiredError()

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise AuthRequiredError("Empty bearer token")
    return token


def get_authenticated_user(authorization: Optional[str], db: Client | None = None) -> dict:
    """Verify the Supabase JWT and return the user's profile row.

    Raises 401 for a missing or invalid token and 404 when the token is
    valid but no profile row exists.
    """
    token = bearer_token(authorization)
    db = db or get_supabase_client()

    try:
        auth_response = db.auth.get_user(token)
    except Exception as exc:
        logger.warning("Auth token verification failed: %s", exc)
        raise AuthInvalidError() from exc

    if not auth_response or not auth_response.user:
        raise AuthInvalidError("User not found for token")

    user_id = auth_response.user.id
    result = (
        db.table("users")
        .select("*")
        .eq("id", user_id)
        .limit(1)
        .execute()
    )

    if not result.data:
        raise UserNotFoundError()

    return result.data[0]


def require_role(user: dict, roles: Iterable[UserRole | str]) -> dict:
    allowed = [getattr(r, "value", r) for r in roles]
    if user.get("role") not in allowed:
        raise InsufficientPermissionsError(required=allowed, current=user.get("role"))
    return user


def is_admin(user: dict) -> bool:
    return user.get("role") == UserRole.ADMIN.value


def doctor_has_patient(doctor_id: str, patient_id: str, db: Client | None = None) -> bool:
    db = db or get_supabase_client()
    result = (
        db.table("doctors")
        .select("patients")
        .eq("id", doctor_id)
        .limit(1)
        .execute()
    )
    if not result.data:
        return False
    return patient_id in (result.data[0].get("patients") or [])


def can_access_user(user: dict, target_user_id: str, db: Client | None = None) -> bool:
    if user["id"] == target_user_id or is_admin(user):
        return True
    if user.get("role") == UserRole.DOCTOR.value:
        return doctor_has_patient(user["id"], target_user_id, db)
    return False


def ensure_can_access_user(user: dict, target_user_id: str, db: Client | None = None) -> None:
    if not can_access_user(user, target_user_id, db):
        logger.info("User %s denied access to data of user %s", user["id"], target_user_id)
        raise InsufficientPermissionsError(current=user.get("role"))


def ensure_self_or_admin(user: dict, target_user_id: str) -> None:
    if user["id"] != target_user_id and not is_admin(user):
        raise InsufficientPermissionsError(
            required=[UserRole.ADMIN.value], current=user.get("role"),
        )
