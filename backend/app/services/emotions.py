"""
Emotion Service
===============
CRUD and queries over the ``emotion_entries`` table.

Entries are always written with the canonical English emotion and an
intensity level name; the numeric ``intensity_score`` is stored next to
the level so that sorting by intensity follows the scale rather than the
alphabet. Statistics and patterns are computed in
``app.services.emotion_stats`` from the rows fetched here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from supabase import Client

from app.errors import DatabaseError, InvalidEmotionDataError
from app.models.emotion import EmotionCreate, EmotionFilters, EmotionUpdate, SortField
from app.services import emotion_stats
from app.services import intensity as intensity_levels
from app.services.emotion_stats import TimeRange, time_range_start
from app.services.vocabulary import english_emotions, to_english, to_ukrainian

logger = logging.getLogger(__name__)

_TABLE = "emotion_entries"
_STATS_COLUMNS = "emotion, intensity, stress_level, recorded_at"

_SORT_COLUMNS = {
    SortField.RECORDED_AT: "recorded_at",
    SortField.INTENSITY: "intensity_score",
    SortField.STRESS_LEVEL: "stress_level",
    SortField.EMOTION: "emotion",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_emotion(value: Any) -> str:
    emotion = to_english(value)
    if emotion is None:
        raise InvalidEmotionDataError(
            f"Unknown emotion: {value}",
            valid_emotions=english_emotions(),
        )
    return emotion.value


def enrich(row: dict) -> dict:
    """Add the Ukrainian word and intensity score/description to a stored row."""
    level = intensity_levels.to_level(row.get("intensity"))
    return {
        **row,
        "emotion_ukrainian": to_ukrainian(row.get("emotion")),
        "intensity_score": intensity_levels.score(level) if level else None,
        "intensity_description": intensity_levels.describe(level),
    }


class EmotionService:
    """Reads and writes emotion entries for one Supabase client."""

    def __init__(self, db: Client) -> None:
        self._db = db

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, user_id: str, payload: EmotionCreate) -> dict:
        level = intensity_levels.prepare_for_save(payload.intensity)
        record = payload.model_dump(mode="json", exclude={"intensity", "recorded_at"})
        record.update({
            "user_id": user_id,
            "emotion": normalize_emotion(payload.emotion),
            "intensity": level.value,
            "intensity_score": intensity_levels.score(level),
            "recorded_at": (payload.recorded_at or _now()).isoformat(),
        })

        result = self._db.table(_TABLE).insert(record).execute()
        if not result.data:
            logger.error("Failed to insert emotion entry for user %s", user_id)
            raise DatabaseError("Failed to save emotion entry")

        entry = result.data[0]
        logger.info(
            "Emotion entry %s created for user %s: %s/%s",
            entry.get("id"), user_id, record["emotion"], record["intensity"],
        )
        return entry

    def update(self, entry_id: str, payload: EmotionUpdate) -> Optional[dict]:
        changes = payload.model_dump(mode="json", exclude_unset=True)
        if not changes:
            return self.get(entry_id)

        if "emotion" in changes:
            changes["emotion"] = normalize_emotion(changes["emotion"])
        if "intensity" in changes:
            level = intensity_levels.prepare_for_save(changes["intensity"])
            changes["intensity"] = level.value
            changes["intensity_score"] = intensity_levels.score(level)
        changes["updated_at"] = _now().isoformat()

        result = self._db.table(_TABLE).update(changes).eq("id", entry_id).execute()
        return result.data[0] if result.data else None

    def delete(self, entry_id: str) -> Optional[dict]:
        result = self._db.table(_TABLE).delete().eq("id", entry_id).execute()
        return result.data[0] if result.data else None

    def delete_for_user(self, user_id: str) -> int:
        result = self._db.table(_TABLE).delete().eq("user_id", user_id).execute()
        return len(result.data or [])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, entry_id: str) -> Optional[dict]:
        result = (
            self._db.table(_TABLE)
            .select("*")
            .eq("id", entry_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def list(self, filters: EmotionFilters) -> tuple[list[dict], int]:
        """Return one page of matching entries and the unpaged total."""
        query = self._db.table(_TABLE).select("*", count="exact")

        if filters.user_id:
            query = query.eq("user_id", filters.user_id)
        if filters.doctor_id:
            query = query.eq("doctor_id", filters.doctor_id)
        if filters.emotions:
            values = [e.value for e in filters.emotions]
            query = query.eq("emotion", values[0]) if len(values) == 1 else query.in_("emotion", values)
        if filters.intensity:
            query = query.eq("intensity", filters.intensity.value)
        if filters.min_stress_level is not None:
            query = query.gte("stress_level", filters.min_stress_level)
        if filters.max_stress_level is not None:
            query = query.lte("stress_level", filters.max_stress_level)

        # A named range replaces any explicit dates
        if filters.time_range:
            now = _now()
            query = (
                query.gte("recorded_at", time_range_start(filters.time_range, now).isoformat())
                .lte("recorded_at", now.isoformat())
            )
        else:
            if filters.start_date:
                query = query.gte("recorded_at", filters.start_date.isoformat())
            if filters.end_date:
                query = query.lte("recorded_at", filters.end_date.isoformat())

        if filters.tags:
            query = query.overlaps("tags", filters.tags)
        if filters.triggers:
            query = query.overlaps("triggers", filters.triggers)
        if filters.is_private is not None:
            query = query.eq("is_private", filters.is_private)

        result = (
            query.order(_SORT_COLUMNS[filters.sort_by], desc=filters.sort_order.value == "desc")
            .range(filters.skip, filters.skip + filters.limit - 1)
            .execute()
        )
        rows = result.data or []
        total = result.count if result.count is not None else len(rows)
        return rows, total

    def find_by_time_range(
        self,
        user_id: str,
        time_range: TimeRange | str,
        include_private: bool = True,
        columns: str = "*",
    ) -> list[dict]:
        """Entries for ``user_id`` inside the named range, newest first."""
        now = _now()
        return self._find_between(
            user_id, time_range_start(time_range, now), now, include_private, columns,
        )

    def stats(
        self,
        user_id: str,
        time_range: Optional[TimeRange | str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        include_private: bool = True,
    ) -> dict:
        if time_range:
            now = _now()
            start_date, end_date = time_range_start(time_range, now), now
        rows = self._find_between(user_id, start_date, end_date, include_private, _STATS_COLUMNS)
        return emotion_stats.compute_stats(rows)

    def patterns(self, user_id: str, days: int = 30, include_private: bool = True) -> list[dict]:
        since = _now() - timedelta(days=days)
        rows = self._find_between(user_id, since, None, include_private, _STATS_COLUMNS)
        return emotion_stats.compute_patterns(rows)

    def _find_between(
        self,
        user_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
        include_private: bool,
        columns: str,
    ) -> list[dict]:
        query = self._db.table(_TABLE).select(columns).eq("user_id", user_id)
        if start:
            query = query.gte("recorded_at", start.isoformat())
        if end:
            query = query.lte("recorded_at", end.isoformat())
        if not include_private:
            query = query.eq("is_private", False)
        result = query.order("recorded_at", desc=True).execute()
        return result.data or []
