"""
Streak Schemas
==============
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field


class StreakResponse(BaseModel):
    user_id: str
    current_streak: int = 0
    longest_streak: int = 0
    streak_start_date: Optional[date] = None
    last_activity_date: Optional[date] = None
    total_mood_tracked: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StreakStats(BaseModel):
    streak: StreakResponse
    streak_duration: int = Field(..., description="Days from streak start to last activity, inclusive.")
    days_since_last_activity: Optional[int] = None
    average_entries_per_day: float


class TopStreakEntry(BaseModel):
    user_id: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    current_streak: int
    longest_streak: int
    total_mood_tracked: int


class TopStreaksResponse(BaseModel):
    streaks: list[TopStreakEntry]
    limit: int
