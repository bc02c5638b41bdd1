"""
Admin Router
============
User administration. Every route requires the ``admin`` role.

GET    /api/v1/admin/users
GET    /api/v1/admin/users/{user_id}
DELETE /api/v1/admin/users/{user_id}   an admin cannot delete themselves here
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from fastapi import APIRouter, Header, Query

from app.auth import get_authenticated_user, require_role
from app.db.supabase import get_supabase_client
from app.errors import CannotDeleteSelfError, UserNotFoundError
from app.models.user import DeletedResponse, Pagination, UserListResponse, UserProfile, UserRole
from app.services.avatar import AvatarService
from app.services.users import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


def _require_admin(authorization: Optional[str]):
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    require_role(user, [UserRole.ADMIN])
    return db, user


@router.get("/users", response_model=UserListResponse, summary="List all users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    authorization: Optional[str] = Header(default=None),
) -> UserListResponse:
    db, _ = _require_admin(authorization)
    rows, total = UserService(db).list(page=page, limit=limit, role=role, search=search)
    return UserListResponse(
        users=[UserProfile(**row) for row in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/users/{user_id}", response_model=UserProfile, summary="Get any user")
async def get_user(user_id: str, authorization: Optional[str] = Header(default=None)) -> UserProfile:
    db, _ = _require_admin(authorization)
    target = UserService(db).get(user_id)
    if target is None:
        raise UserNotFoundError()
    return UserProfile(**target)


@router.delete(
    "/users/{user_id}",
    response_model=DeletedResponse,
    summary="Delete any other user",
    responses={400: {"description": "Admins cannot delete their own account here"}},
)
async def delete_user(user_id: str, authorization: Optional[str] = Header(default=None)) -> DeletedResponse:
    db, admin = _require_admin(authorization)
    if admin["id"] == user_id:
        raise CannotDeleteSelfError()

    if UserService(db).delete(user_id) is None:
        raise UserNotFoundError()
    AvatarService(db).delete(user_id)

    logger.info("Admin %s deleted user %s", admin["id"], user_id)
    return DeletedResponse(message="User deleted", id=user_id)
