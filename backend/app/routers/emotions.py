"""
Emotions Router
===============
Emotion entry CRUD, filtered listings, statistics and the AI-backed
analysis endpoints. Every route requires a bearer token.

POST   /api/v1/emotions                        Log an entry (advances the streak)
GET    /api/v1/emotions                        Filtered list
GET    /api/v1/emotions/search                 Comma-separated emotions/tags/triggers
GET    /api/v1/emotions/intensity-levels       Intensity help document
POST   /api/v1/emotions/instant-recommendation Recommendations for one feeling, nothing stored
GET    /api/v1/emotions/user/{user_id}/timerange/{time_range}
GET    /api/v1/emotions/user/{user_id}/stats
GET    /api/v1/emotions/user/{user_id}/patterns
GET    /api/v1/emotions/user/{user_id}/analysis
GET    /api/v1/emotions/user/{user_id}/recommendations
GET    /api/v1/emotions/user/{user_id}/summary
GET    /api/v1/emotions/{entry_id}
PUT    /api/v1/emotions/{entry_id}             owner or admin
DELETE /api/v1/emotions/{entry_id}             owner or admin

Visibility:
    Patients only ever see their own entries. Doctors see entries of
    patients on their list and admins see everything, but private entries
    are returned to their owner only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Header, Query, status

from app.auth import ensure_can_access_user, get_authenticated_user, is_admin
from app.db.supabase import get_supabase_client
from app.errors import (
    EmotionNotFoundError,
    InsufficientPermissionsError,
    InvalidEmotionDataError,
    InvalidFiltersError,
)
from app.models.analysis import (
    AnalysisResponse,
    InstantBasis,
    InstantRecommendationResponse,
    RecommendationsResponse,
    StatsDigest,
    StreakSnapshot,
    SummaryMetadata,
    SummaryResponse,
)
from app.models.emotion import (
    EmotionCreate,
    EmotionFilters,
    EmotionListResponse,
    EmotionPattern,
    EmotionResponse,
    EmotionStats,
    EmotionUpdate,
    InstantRecommendationRequest,
    IntensityLevelInfo,
    IntensityLevelsResponse,
    SortField,
    SortOrder,
)
from app.models.user import UserRole
from app.services import emotion_stats
from app.services import intensity as intensity_levels
from app.services.analysis import get_analysis_service
from app.services.emotion_stats import TimeRange
from app.services.emotions import EmotionService, enrich
from app.services.intensity import IntensityLevel
from app.services.streak import StreakService
from app.services.vocabulary import EmotionType, english_emotions, to_english, to_ukrainian

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/emotions", tags=["emotions"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _split(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _parse_emotions(values: Optional[list[str]]) -> Optional[list[EmotionType]]:
    if not values:
        return None
    parsed = [to_english(v) for v in values]
    unknown = [v for v, p in zip(values, parsed) if p is None]
    if unknown:
        raise InvalidFiltersError(
            f"Unknown emotion(s): {', '.join(unknown)}",
            valid_emotions=english_emotions(),
        )
    return parsed


def _parse_intensity(value: Optional[str]) -> Optional[IntensityLevel]:
    if value is None or value == "":
        return None
    level = intensity_levels.to_level(value)
    if level is None:
        raise InvalidFiltersError(
            f"Unknown intensity: {value}",
            valid_levels=[lvl.value for lvl in IntensityLevel],
        )
    return level


def _scope_filters(db, user: dict, user_id: Optional[str], filters: dict) -> EmotionFilters:
    """Pin a listing to the entries the caller is allowed to see."""
    role = user.get("role")

    if user_id and user_id != user["id"]:
        if role not in (UserRole.DOCTOR.value, UserRole.ADMIN.value):
            raise InsufficientPermissionsError(
                required=[UserRole.DOCTOR.value, UserRole.ADMIN.value], current=role,
            )
        ensure_can_access_user(user, user_id, db)
    elif not user_id and not is_admin(user):
        user_id = user["id"]

    if user_id != user["id"]:
        filters["is_private"] = False
    return EmotionFilters(user_id=user_id, **filters)


def _load_entry(db, user: dict, entry_id: str, for_write: bool = False) -> dict:
    """Fetch an entry the caller may see. Admins may also modify private entries."""
    entry = EmotionService(db).get(entry_id)
    if entry is None:
        raise EmotionNotFoundError()
    if entry["user_id"] != user["id"]:
        ensure_can_access_user(user, entry["user_id"], db)
        if entry.get("is_private") and not (for_write and is_admin(user)):
            raise EmotionNotFoundError()
    return entry


def _ensure_owner_or_admin(user: dict, entry: dict) -> None:
    if entry["user_id"] != user["id"] and not is_admin(user):
        raise InsufficientPermissionsError(required=[UserRole.ADMIN.value], current=user.get("role"))


def _instant_scale(value: Any) -> int:
    """Read an instant-recommendation intensity as 1-10 (level names map to score x 2)."""
    if isinstance(value, str) and value.strip().upper() in IntensityLevel.__members__:
        return intensity_levels.score(value) * 2
    scale = intensity_levels.normalize_scale(value, default=0)
    if not intensity_levels.is_valid_scale(scale):
        raise InvalidEmotionDataError(f"Intensity must be between 1 and 10: {value}")
    return scale


def _digest(time_range: TimeRange, stats: dict) -> StatsDigest:
    return StatsDigest(
        time_range=time_range.value,
        entries_analyzed=stats["total_entries"],
        average_intensity=stats["average_intensity"],
        most_common_intensity=stats["most_common_intensity"],
        most_common_emotion=stats["most_common_emotion"],
    )


def _listing(rows: list[dict], total: int) -> EmotionListResponse:
    return EmotionListResponse(
        data=[EmotionResponse(**enrich(row)) for row in rows],
        total=total,
        count=len(rows),
    )


# ---------------------------------------------------------------------------
# Create & list
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=EmotionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log an emotion",
    responses={400: {"description": "Unknown emotion or intensity"}},
)
async def create_emotion(
    body: EmotionCreate,
    authorization: Optional[str] = Header(default=None),
) -> EmotionResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    entry = EmotionService(db).create(user["id"], body)

    # A streak failure must not lose the entry that was just saved
    try:
        StreakService(db).record_activity(user["id"], body.recorded_at)
    except Exception:
        logger.exception("Streak update failed for user %s after entry %s", user["id"], entry.get("id"))

    return EmotionResponse(**enrich(entry))


@router.get("", response_model=EmotionListResponse, summary="List emotion entries")
async def list_emotions(
    user_id: Optional[str] = Query(None, description="Doctors and admins only."),
    doctor_id: Optional[str] = Query(None),
    emotion: Optional[str] = Query(None, description="One emotion, or several comma separated."),
    intensity: Optional[str] = Query(None),
    min_stress_level: Optional[int] = Query(None, ge=1, le=10),
    max_stress_level: Optional[int] = Query(None, ge=1, le=10),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    time_range: Optional[TimeRange] = Query(None, description="Overrides start_date/end_date."),
    tags: Optional[str] = Query(None, description="Comma separated; any match."),
    triggers: Optional[str] = Query(None, description="Comma separated; any match."),
    is_private: Optional[bool] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    sort_by: SortField = Query(SortField.RECORDED_AT),
    sort_order: SortOrder = Query(SortOrder.DESC),
    authorization: Optional[str] = Header(default=None),
) -> EmotionListResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    filters = _scope_filters(db, user, user_id, {
        "doctor_id": doctor_id,
        "emotions": _parse_emotions(_split(emotion)),
        "intensity": _parse_intensity(intensity),
        "min_stress_level": min_stress_level,
        "max_stress_level": max_stress_level,
        "start_date": start_date,
        "end_date": end_date,
        "time_range": time_range,
        "tags": _split(tags),
        "triggers": _split(triggers),
        "is_private": is_private,
        "limit": limit,
        "skip": skip,
        "sort_by": sort_by,
        "sort_order": sort_order,
    })

    rows, total = EmotionService(db).list(filters)
    return _listing(rows, total)


@router.get("/search", response_model=EmotionListResponse, summary="Search emotion entries")
async def search_emotions(
    user_id: Optional[str] = Query(None),
    emotions: Optional[str] = Query(None, description="Comma separated, English or Ukrainian."),
    tags: Optional[str] = Query(None),
    triggers: Optional[str] = Query(None),
    intensity: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=100),
    skip: int = Query(0, ge=0),
    authorization: Optional[str] = Header(default=None),
) -> EmotionListResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)

    filters = _scope_filters(db, user, user_id, {
        "emotions": _parse_emotions(_split(emotions)),
        "tags": _split(tags),
        "triggers": _split(triggers),
        "intensity": _parse_intensity(intensity),
        "start_date": start_date,
        "end_date": end_date,
        "limit": limit,
        "skip": skip,
    })

    rows, total = EmotionService(db).list(filters)
    return _listing(rows, total)


@router.get(
    "/intensity-levels",
    response_model=IntensityLevelsResponse,
    summary="Accepted intensity values",
)
async def get_intensity_levels(
    authorization: Optional[str] = Header(default=None),
) -> IntensityLevelsResponse:
    get_authenticated_user(authorization, get_supabase_client())
    return IntensityLevelsResponse(
        levels=[IntensityLevelInfo(**lvl) for lvl in intensity_levels.all_levels()],
        valid_inputs=intensity_levels.valid_inputs(),
    )


@router.post(
    "/instant-recommendation",
    response_model=InstantRecommendationResponse,
    summary="Recommendations for how you feel right now",
)
async def instant_recommendation(
    body: InstantRecommendationRequest,
    authorization: Optional[str] = Header(default=None),
) -> InstantRecommendationResponse:
    get_authenticated_user(authorization, get_supabase_client())

    emotion = to_english(body.emotion)
    if emotion is None:
        raise InvalidEmotionDataError(f"Unknown emotion: {body.emotion}", valid_emotions=english_emotions())
    scale = _instant_scale(body.intensity)

    recommendations = await get_analysis_service().instant_recommendation(
        emotion, scale, triggers=body.triggers, tags=body.tags, notes=body.notes,
    )
    return InstantRecommendationResponse(
        recommendations=recommendations,
        based_on=InstantBasis(
            emotion=to_ukrainian(emotion),
            emotion_english=emotion.value,
            intensity=scale,
            triggers=body.triggers,
        ),
    )


# ---------------------------------------------------------------------------
# Per-user views
# ---------------------------------------------------------------------------

def _user_view(authorization: Optional[str], user_id: str):
    """Authenticate, access-check and report whether private entries are visible."""
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    ensure_can_access_user(user, user_id, db)
    return db, user["id"] == user_id


@router.get(
    "/user/{user_id}/timerange/{time_range}",
    response_model=list[EmotionResponse],
    summary="Entries in a named time range",
)
async def entries_in_range(
    user_id: str,
    time_range: TimeRange,
    authorization: Optional[str] = Header(default=None),
) -> list[EmotionResponse]:
    db, include_private = _user_view(authorization, user_id)
    rows = EmotionService(db).find_by_time_range(user_id, time_range, include_private=include_private)
    return [EmotionResponse(**enrich(row)) for row in rows]


@router.get("/user/{user_id}/stats", response_model=EmotionStats, summary="Emotion statistics")
async def user_stats(
    user_id: str,
    time_range: Optional[TimeRange] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    authorization: Optional[str] = Header(default=None),
) -> EmotionStats:
    db, include_private = _user_view(authorization, user_id)
    if start_date and end_date and start_date > end_date:
        raise InvalidFiltersError("start_date must be before end_date")

    stats = EmotionService(db).stats(
        user_id,
        time_range=time_range,
        start_date=start_date,
        end_date=end_date,
        include_private=include_private,
    )
    return EmotionStats(**stats)


@router.get(
    "/user/{user_id}/patterns",
    response_model=list[EmotionPattern],
    summary="Recurring emotion patterns by hour and weekday",
)
async def user_patterns(
    user_id: str,
    days: int = Query(30, ge=1, le=365),
    authorization: Optional[str] = Header(default=None),
) -> list[EmotionPattern]:
    db, include_private = _user_view(authorization, user_id)
    patterns = EmotionService(db).patterns(user_id, days=days, include_private=include_private)
    return [EmotionPattern(**p) for p in patterns]


@router.get("/user/{user_id}/analysis", response_model=AnalysisResponse, summary="AI emotion analysis")
async def user_analysis(
    user_id: str,
    time_range: TimeRange = Query(TimeRange.MONTH),
    authorization: Optional[str] = Header(default=None),
) -> AnalysisResponse:
    db, include_private = _user_view(authorization, user_id)
    service = EmotionService(db)

    entries = service.find_by_time_range(user_id, time_range, include_private=include_private)
    stats = emotion_stats.compute_stats(entries)
    patterns = service.patterns(user_id, days=30, include_private=include_private)

    analysis = await get_analysis_service().analyze(entries, stats, patterns)
    return AnalysisResponse(analysis=analysis, based_on=_digest(time_range, stats))


@router.get(
    "/user/{user_id}/recommendations",
    response_model=RecommendationsResponse,
    summary="AI recommendations",
)
async def user_recommendations(
    user_id: str,
    time_range: TimeRange = Query(TimeRange.WEEK),
    authorization: Optional[str] = Header(default=None),
) -> RecommendationsResponse:
    db, include_private = _user_view(authorization, user_id)

    entries = EmotionService(db).find_by_time_range(user_id, time_range, include_private=include_private)
    stats = emotion_stats.compute_stats(entries)

    recommendations = await get_analysis_service().recommend(entries, stats)
    return RecommendationsResponse(recommendations=recommendations, based_on=_digest(time_range, stats))


@router.get("/user/{user_id}/summary", response_model=SummaryResponse, summary="Overall summary")
async def user_summary(
    user_id: str,
    time_range: TimeRange = Query(TimeRange.MONTH),
    authorization: Optional[str] = Header(default=None),
) -> SummaryResponse:
    db, include_private = _user_view(authorization, user_id)
    service = EmotionService(db)

    entries = service.find_by_time_range(user_id, time_range, include_private=include_private)
    stats = emotion_stats.compute_stats(entries)
    patterns = service.patterns(user_id, days=30, include_private=include_private)
    streak = StreakService(db).get_or_create(user_id)

    analyzer = get_analysis_service()
    analysis = await analyzer.analyze(entries, stats, patterns)
    recommendations = await analyzer.recommend(entries, stats)
    summary = await analyzer.summarize(stats, analysis, recommendations)

    digest = _digest(time_range, stats)
    return SummaryResponse(
        summary=summary,
        analysis=analysis,
        recommendations=recommendations,
        stats=EmotionStats(**stats),
        streak=StreakSnapshot(
            current_streak=streak.get("current_streak") or 0,
            longest_streak=streak.get("longest_streak") or 0,
            total_mood_tracked=streak.get("total_mood_tracked") or 0,
            streak_start_date=streak.get("streak_start_date"),
            is_active=bool(streak.get("is_active", True)),
        ),
        metadata=SummaryMetadata(**digest.model_dump(), generated_at=datetime.now(timezone.utc)),
    )


# ---------------------------------------------------------------------------
# Single entry
# ---------------------------------------------------------------------------

@router.get("/{entry_id}", response_model=EmotionResponse, summary="Get an entry")
async def get_emotion(entry_id: str, authorization: Optional[str] = Header(default=None)) -> EmotionResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    return EmotionResponse(**enrich(_load_entry(db, user, entry_id)))


@router.put("/{entry_id}", response_model=EmotionResponse, summary="Update an entry")
async def update_emotion(
    entry_id: str,
    body: EmotionUpdate,
    authorization: Optional[str] = Header(default=None),
) -> EmotionResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    entry = _load_entry(db, user, entry_id, for_write=True)
    _ensure_owner_or_admin(user, entry)

    updated = EmotionService(db).update(entry_id, body)
    if updated is None:
        raise EmotionNotFoundError()
    return EmotionResponse(**enrich(updated))


@router.delete("/{entry_id}", response_model=EmotionResponse, summary="Delete an entry")
async def delete_emotion(entry_id: str, authorization: Optional[str] = Header(default=None)) -> EmotionResponse:
    db = get_supabase_client()
    user = get_authenticated_user(authorization, db)
    entry = _load_entry(db, user, entry_id, for_write=True)
    _ensure_owner_or_admin(user, entry)

    deleted = EmotionService(db).delete(entry_id) or entry
    logger.info("Emotion entry %s deleted by user %s", entry_id, user["id"])
    return EmotionResponse(**enrich(deleted))
