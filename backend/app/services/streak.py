"""
Streak Service
==============
Tracks consecutive days of mood logging per user.

The unit is the UTC calendar day. Every new emotion entry calls
``record_activity``; the streak then either starts, stays put (second entry
on the same day), continues (entry on the day after the last one) or resets
(a day or more was skipped). Reading a streak expires it if the user missed
yesterday, so the dashboard never shows a streak that is already broken.

The transition rules are plain functions over ``StreakState`` so they can
be tested without a database; ``StreakService`` only loads and stores rows.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from supabase import Client

logger = logging.getLogger(__name__)

_TABLE = "streaks"


# ---------------------------------------------------------------------------
# State & transitions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    streak_start_date: Optional[date] = None
    last_activity_date: Optional[date] = None
    total_mood_tracked: int = 0
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict) -> StreakState:
        return cls(
            current_streak=int(row.get("current_streak") or 0),
            longest_streak=int(row.get("longest_streak") or 0),
            streak_start_date=_parse_day(row.get("streak_start_date")),
            last_activity_date=_parse_day(row.get("last_activity_date")),
            total_mood_tracked=int(row.get("total_mood_tracked") or 0),
            is_active=bool(row.get("is_active", True)),
        )

    def to_row(self) -> dict:
        row = asdict(self)
        for key in ("streak_start_date", "last_activity_date"):
            row[key] = row[key].isoformat() if row[key] else None
        return row


def _parse_day(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date()
    if isinstance(value, date):
        return value
    text = str(value)
    if "T" in text or " " in text:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).astimezone(timezone.utc).date()
    return date.fromisoformat(text)


def advance(state: StreakState, activity_day: date) -> StreakState:
    """Apply one logged entry on ``activity_day`` to the streak."""
    total = state.total_mood_tracked + 1
    last = state.last_activity_date

    if last is None:
        current, start, last = 1, activity_day, activity_day
    elif activity_day < last:
        # Backfilled entry for a day before the last activity
        current, start = state.current_streak, state.streak_start_date
    elif state.current_streak == 0:
        current, start, last = 1, activity_day, activity_day
    elif activity_day == last:
        current, start = state.current_streak, state.streak_start_date
    elif activity_day == last + timedelta(days=1):
        current, start, last = state.current_streak + 1, state.streak_start_date, activity_day
    else:
        current, start, last = 1, activity_day, activity_day

    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        streak_start_date=start,
        last_activity_date=last,
        total_mood_tracked=total,
        is_active=current > 0,
    )


def expire(state: StreakState, today: date) -> StreakState:
    """Break the streak if nothing was logged today or yesterday."""
    last = state.last_activity_date
    if state.current_streak > 0 and last is not None and last < today - timedelta(days=1):
        return replace(state, current_streak=0, is_active=False, streak_start_date=None)
    return state


def reset(state: StreakState) -> StreakState:
    return replace(state, current_streak=0, is_active=False, streak_start_date=None)


def compute_stats(state: StreakState, today: date) -> dict:
    start, last = state.streak_start_date, state.last_activity_date

    duration = (last - start).days + 1 if start and last else 0
    days_since = (today - last).days if last else None

    if state.total_mood_tracked and start:
        span = max(1, (today - start).days + 1)
        average = round(state.total_mood_tracked / span, 2)
    else:
        average = 0.0

    return {
        "streak_duration": duration,
        "days_since_last_activity": days_since,
        "average_entries_per_day": average,
    }


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class StreakService:
    """Loads and stores streak rows in the ``streaks`` table."""

    def __init__(self, db: Client) -> None:
        self._db = db

    def get(self, user_id: str) -> Optional[dict]:
        result = (
            self._db.table(_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def get_or_create(self, user_id: str, today: Optional[date] = None) -> dict:
        """Return the user's streak, creating an empty one on first read.

        A stale streak (no entry today or yesterday) is expired and saved
        before it is returned.
        """
        today = today or today_utc()
        row = self.get(user_id)

        if row is None:
            insert = {"user_id": user_id, **StreakState().to_row()}
            result = self._db.table(_TABLE).insert(insert).execute()
            logger.info("Created empty streak for user %s", user_id)
            return result.data[0] if result.data else insert

        state = StreakState.from_row(row)
        expired = expire(state, today)
        if expired != state:
            logger.info(
                "Streak for user %s expired after %d days (last activity %s)",
                user_id, state.current_streak, state.last_activity_date,
            )
            return self._save(user_id, expired)
        return row

    def record_activity(self, user_id: str, when: Optional[datetime] = None) -> dict:
        """Advance the streak for an entry logged at ``when`` (default: now)."""
        when = when or datetime.now(timezone.utc)
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        activity_day = when.astimezone(timezone.utc).date()

        row = self.get(user_id)
        state = StreakState.from_row(row) if row else StreakState()
        updated = advance(state, activity_day)

        logger.debug(
            "Streak for user %s: %d -> %d (activity %s)",
            user_id, state.current_streak, updated.current_streak, activity_day,
        )

        if row is None:
            result = self._db.table(_TABLE).insert({"user_id": user_id, **updated.to_row()}).execute()
            return result.data[0] if result.data else {"user_id": user_id, **updated.to_row()}
        return self._save(user_id, updated)

    def reset(self, user_id: str) -> Optional[dict]:
        row = self.get(user_id)
        if row is None:
            return None
        return self._save(user_id, reset(StreakState.from_row(row)))

    def delete(self, user_id: str) -> Optional[dict]:
        result = self._db.table(_TABLE).delete().eq("user_id", user_id).execute()
        return result.data[0] if result.data else None

    def top(self, limit: int = 10) -> list[dict]:
        """Active streaks, longest current streak first, with the user's name."""
        result = (
            self._db.table(_TABLE)
            .select("*, users(first_name, last_name)")
            .eq("is_active", True)
            .order("current_streak", desc=True)
            .limit(limit)
            .execute()
        )

        entries = []
        for row in result.data or []:
            profile = row.get("users") or {}
            entries.append({
                "user_id": row["user_id"],
                "first_name": profile.get("first_name"),
                "last_name": profile.get("last_name"),
                "current_streak": int(row.get("current_streak") or 0),
                "longest_streak": int(row.get("longest_streak") or 0),
                "total_mood_tracked": int(row.get("total_mood_tracked") or 0),
            })
        return entries

    def _save(self, user_id: str, state: StreakState) -> dict:
        payload = {**state.to_row(), "updated_at": datetime.now(timezone.utc).isoformat()}
        result = self._db.table(_TABLE).update(payload).eq("user_id", user_id).execute()
        return result.data[0] if result.data else {"user_id": user_id, **payload}
