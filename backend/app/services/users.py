"""
User Service
============
Profile rows in ``users`` and the matching Supabase Auth accounts.

Supabase Auth owns credentials; the ``users`` table owns everything the
app shows (names, avatar, role). Both are created together at
registration and removed together on delete.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from supabase import Client

from app.errors import (
    DatabaseError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
)
from app.models.user import UserRole
from app.services.emotions import EmotionService
from app.services.streak import StreakService

logger = logging.getLogger(__name__)

_TABLE = "users"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def search_term(term: str) -> str:
    # PostgREST or_() filters are comma separated; keep the term a single value
    return term.replace(",", " ").replace("%", "").replace("(", "").replace(")", "").strip()


class UserService:

    def __init__(self, db: Client) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def get(self, user_id: str) -> Optional[dict]:
        result = self._db.table(_TABLE).select("*").eq("id", user_id).limit(1).execute()
        return result.data[0] if result.data else None

    def get_by_email(self, email: str) -> Optional[dict]:
        result = self._db.table(_TABLE).select("*").eq("email", email.lower()).limit(1).execute()
        return result.data[0] if result.data else None

    def email_taken(self, email: str, exclude_id: Optional[str] = None) -> bool:
        existing = self.get_by_email(email)
        return existing is not None and existing["id"] != exclude_id

    def create_profile(
        self,
        user_id: str,
        email: str,
        role: UserRole = UserRole.PATIENT,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> dict:
        row = {
            "id": user_id,
            "email": email.lower(),
            "first_name": first_name,
            "last_name": last_name,
            "role": role.value,
        }
        result = self._db.table(_TABLE).insert(row).execute()
        if not result.data:
            logger.error("Failed to insert profile for user %s", user_id)
            raise DatabaseError("Failed to create user profile")
        return result.data[0]

    def update(self, user_id: str, changes: dict) -> Optional[dict]:
        payload = {**changes, "updated_at": _now()}
        result = self._db.table(_TABLE).update(payload).eq("id", user_id).execute()
        return result.data[0] if result.data else None

    def change_email(self, user_id: str, email: str) -> None:
        if self.email_taken(email, exclude_id=user_id):
            raise EmailAlreadyExistsError(email)
        self._db.auth.admin.update_user_by_id(user_id, {"email": email, "email_confirm": True})
        logger.info("Email changed for user %s", user_id)

    def list(
        self,
        page: int = 1,
        limit: int = 20,
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
    ) -> tuple[list[dict], int]:
        query = self._db.table(_TABLE).select("*", count="exact")
        if role:
            query = query.eq("role", role.value)
        if search and search_term(search):
            term = search_term(search)
            query = query.or_(
                f"first_name.ilike.%{term}%,last_name.ilike.%{term}%,email.ilike.%{term}%"
            )

        offset = (page - 1) * limit
        result = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = result.data or []
        return rows, result.count if result.count is not None else len(rows)

    # ------------------------------------------------------------------
    # Auth accounts
    # ------------------------------------------------------------------

    def create_account(self, email: str, password: str, role: UserRole) -> str:
        """Create a confirmed Supabase Auth user and return its id."""
        try:
            response = self._db.auth.admin.create_user({
                "email": email,
                "password": password,
                "email_confirm": True,
                "user_metadata": {"role": role.value},
            })
        except Exception as exc:
            if "already" in str(exc).lower():
                raise EmailAlreadyExistsError(email) from exc
            logger.exception("Supabase Auth user creation failed")
            raise DatabaseError("Failed to create account") from exc
        return response.user.id

    def sign_in(self, auth_client: Client, email: str, password: str):
        """Password sign-in on a dedicated client. Returns the Supabase session."""
        try:
            response = auth_client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            logger.info("Sign-in rejected: %s", exc)
            raise InvalidCredentialsError() from exc
        if not response or not response.session:
            raise InvalidCredentialsError()
        return response.session

    def change_password(self, auth_client: Client, user: dict, current: str, new: str) -> None:
        try:
            self.sign_in(auth_client, user["email"], current)
        except InvalidCredentialsError as exc:
            raise InvalidCurrentPasswordError() from exc
        self._db.auth.admin.update_user_by_id(user["id"], {"password": new})
        logger.info("Password changed for user %s", user["id"])

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, user_id: str) -> Optional[dict]:
        """Remove the user's entries, streak, doctor row, profile and Auth account."""
        profile = self.get(user_id)
        if profile is None:
            return None

        EmotionService(self._db).delete_for_user(user_id)
        StreakService(self._db).delete(user_id)
        if profile.get("role") == UserRole.DOCTOR.value:
            self._db.table("doctors").delete().eq("id", user_id).execute()
        self._db.table(_TABLE).delete().eq("id", user_id).execute()

        try:
            self._db.auth.admin.delete_user(user_id)
        except Exception:
            logger.warning("Auth account for user %s could not be deleted", user_id, exc_info=True)

        logger.info("Deleted user %s and their data", user_id)
        return profile
