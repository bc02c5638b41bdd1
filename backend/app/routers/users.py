"""
Users Router
============
Profile, password and avatar management for the signed-in user, plus
user lookups for doctors and admins.

GET    /api/v1/users/profile
PUT    /api/v1/users/profile
PUT    /api/v1/users/password
POST   /api/v1/users/avatar      (PUT is accepted too)
DELETE /api/v1/users/avatar
GET    /api/v1/users             doctor or admin
GET    /api/v1/users/{user_id}   self, doctor or admin
DELETE /api/v1/users/{user_id}   self or admin
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import APIRouter, File, Header, Query, UploadFile

from app.auth import ensure_self_or_admin, get_authenticated_user, require_role
from app.db.supabase import create_auth_client, get_supabase_client
from app.errors import InsufficientPermissionsError, UserNotFoundError
from app.models.user import (
    AvatarResponse,
    DeletedResponse,
    MessageResponse,
    Pagination,
    PasswordChange,
    ProfileUpdate,
    UserListResponse,
    UserProfile,
    UserRole,
)
from app.services.avatar import AvatarService
from app.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])


# ---------------------------------------------------------------------------
# Own profile
# ---------------------------------------------------------------------------

@router.get("/profile", response_model=UserProfile, summary="Get your profile")
async def get_profile(authorization: Optional[str] = Header(default=None)) -> UserProfile:
    user = get_authenticated_user(authorization, get_supabase_client())
    return UserProfile(**user)


@router.put(
    "/profile",
    response_model=UserProfile,
    summary="Update your profile",
    responses={409: {"description": "Email already in use"}},
)
async def update_profile(
    body: ProfileUpdate,
    authorization: Optional[str] = Header(default=None),
) -> UserProfile:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    users = UserService(db)

    changes = body.model_dump(exclude_unset=True)
    if changes.get("email") and changes["email"] != user["email"]:
        users.change_email(user["id"], changes["email"])
    elif "email" in changes:
        changes.pop("email")

    if not changes:
        return UserProfile(**user)

    updated = users.update(user["id"], changes)
    if updated is None:
        raise UserNotFoundError()
    logger.info("Profile updated for user %s: %s", user["id"], sorted(changes))
    return UserProfile(**updated)


@router.put(
    "/password",
    response_model=MessageResponse,
    summary="Change your password",
    responses={400: {"description": "Current password is incorrect"}},
)
async def change_password(
    body: PasswordChange,
    authorization: Optional[str] = Header(default=None),
) -> MessageResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    UserService(db).change_password(
        create_auth_client(), user, body.current_password, body.new_password,
    )
    return MessageResponse(message="Password updated")


# ---------------------------------------------------------------------------
# Avatar
# ---------------------------------------------------------------------------

@router.post(
    "/avatar",
    response_model=AvatarResponse,
    summary="Upload a profile picture",
    responses={400: {"description": "Not an image, or larger than 5 MB"}},
)
@router.put("/avatar", response_model=AvatarResponse, include_in_schema=False)
async def upload_avatar(
    file: UploadFile = File(...),
    authorization: Optional[str] = Header(default=None),
) -> AvatarResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    avatars = AvatarService(db)
    # One byte past the limit is enough to reject an oversized upload
    content = await file.read(avatars.max_bytes + 1)
    url = avatars.upload(user["id"], content, file.content_type)
    UserService(db).update(user["id"], {"avatar": url})
    return AvatarResponse(avatar=url)


@router.delete("/avatar", response_model=AvatarResponse, summary="Remove your profile picture")
async def delete_avatar(authorization: Optional[str] = Header(default=None)) -> AvatarResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    AvatarService(db).delete(user["id"])
    UserService(db).update(user["id"], {"avatar": None})
    return AvatarResponse(avatar=None)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

@router.get("", response_model=UserListResponse, summary="List users (doctor or admin)")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    authorization: Optional[str] = Header(default=None),
) -> UserListResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    require_role(user, [UserRole.DOCTOR, UserRole.ADMIN])

    rows, total = UserService(db).list(page=page, limit=limit, role=role, search=search)
    return UserListResponse(
        users=[UserProfile(**row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/{user_id}", response_model=UserProfile, summary="Get a user by id")
async def get_user(user_id: str, authorization: Optional[str] = Header(default=None)) -> UserProfile:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    if user["id"] != user_id and user.get("role") not in (UserRole.DOCTOR.value, UserRole.ADMIN.value):
        raise InsufficientPermissionsError(
            required=[UserRole.DOCTOR.value, UserRole.ADMIN.value], current=user.get("role"),
        )

    target = UserService(db).get(user_id)
    if target is None:
        raise UserNotFoundError()
    return UserProfile(**target)


@router.delete("/{user_id}", response_model=DeletedResponse, summary="Delete a user and their data")
async def delete_user(user_id: str, authorization: Optional[str] = Header(default=None)) -> DeletedResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_self_or_admin(user, user_id)

    if UserService(db).delete(user_id) is None:
        raise UserNotFoundError()
    AvatarService(db).delete(user_id)
    return DeletedResponse(message="User deleted", id=user_id)
