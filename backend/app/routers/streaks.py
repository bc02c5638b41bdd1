"""
Streaks Router
==============
GET    /api/v1/streaks/top?limit=10           Leaderboard of active streaks
GET    /api/v1/streaks/user/{user_id}         Current streak (created on first read)
GET    /api/v1/streaks/user/{user_id}/stats   Streak with derived numbers
POST   /api/v1/streaks/user/{user_id}/reset   self or admin
DELETE /api/v1/streaks/user/{user_id}         admin

Streaks advance when an emotion entry is created; these routes only read,
reset or remove them.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, Query

from app.auth import ensure_can_access_user, ensure_self_or_admin, get_authenticated_user, require_role
from app.db.supabase import get_supabase_client
from app.errors import InvalidFiltersError, StreakNotFoundError
from app.models.streak import StreakResponse, StreakStats, TopStreakEntry, TopStreaksResponse
from app.models.user import UserRole
from app.services import streak as streak_rules
from app.services.streak import StreakService, StreakState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/streaks", tags=["streaks"])

_TOP_MAX = 100


@router.get("/top", response_model=TopStreaksResponse, summary="Longest active streaks")
async def top_streaks(
    limit: int = Query(10),
    authorization: Optional[str] = Header(default=None),
) -> TopStreaksResponse:
    db = get_supabase_client()
    get_authenticated_user(authorization, db)

    if not 1 <= limit <= _TOP_MAX:
        raise InvalidFiltersError(f"limit must be between 1 and {_TOP_MAX}")

    entries = StreakService(db).top(limit)
    return TopStreaksResponse(streaks=[TopStreakEntry(**e) for e in entries], limit=limit)


@router.get("/user/{user_id}", response_model=StreakResponse, summary="Get a user's streak")
async def get_streak(user_id: str, authorization: Optional[str] = Header(default=None)) -> StreakResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_can_access_user(user, user_id, db)

    return StreakResponse(**StreakService(db).get_or_create(user_id))


@router.get("/user/{user_id}/stats", response_model=StreakStats, summary="Streak statistics")
async def get_streak_stats(user_id: str, authorization: Optional[str] = Header(default=None)) -> StreakStats:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_can_access_user(user, user_id, db)

    row = StreakService(db).get_or_create(user_id)
    numbers = streak_rules.compute_stats(StreakState.from_row(row), streak_rules.today_utc())
    return StreakStats(streak=StreakResponse(**row), **numbers)


@router.post("/user/{user_id}/reset", response_model=StreakResponse, summary="Reset a streak")
async def reset_streak(user_id: str, authorization: Optional[str] = Header(default=None)) -> StreakResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_self_or_admin(user, user_id)

    row = StreakService(db).reset(user_id)
    if row is None:
        raise StreakNotFoundError()
    logger.info("Streak for user %s reset by %s", user_id, user["id"])
    return StreakResponse(**row)


@router.delete("/user/{user_id}", response_model=StreakResponse, summary="Delete a streak (admin)")
async def delete_streak(user_id: str, authorization: Optional[str] = Header(default=None)) -> StreakResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    require_role(user, [UserRole.ADMIN])

    row = StreakService(db).delete(user_id)
    if row is None:
        raise StreakNotFoundError()
    return StreakResponse(**row)
