"""
Emotion Entry Schemas
=====================
Pydantic models for the emotion tracking API.

Key design decisions:
- ``emotion`` and ``intensity`` are accepted loosely on input (English or
  Ukrainian words; level names or 1-5 scores) and normalised by the
  service, so an unknown value is a 400 with a helpful code rather than a
  bare 422.
- A numeric ``stress_level`` is clamped into 1-10 instead of rejected;
  anything that is not a number is a 422.
- Responses carry the Ukrainian emotion word and the numeric intensity
  score next to the stored values.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, field_validator

from app.services import intensity as intensity_levels
from app.services.emotion_stats import TimeRange
from app.services.intensity import IntensityLevel
from app.services.vocabulary import EmotionType, to_english

RawIntensity = Union[StrictInt, StrictFloat, str]


def _check_items(values: Optional[list[str]], max_length: int, field: str) -> Optional[list[str]]:
    if values is None:
        return values
    cleaned = [v.strip() for v in values if v and v.strip()]
    too_long = [v for v in cleaned if len(v) > max_length]
    if too_long:
        raise ValueError(f"Each {field} entry must be at most {max_length} characters")
    return cleaned


def _clamp_stress(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    clamped = intensity_levels.normalize_scale(value, default=None)
    if clamped is None:
        raise ValueError(f"Stress level must be a number between 1 and 10: {value!r}")
    return clamped


def _mood_word(value: Any) -> Optional[EmotionType]:
    if value is None or value == "":
        return None
    emotion = to_english(value)
    if emotion is None:
        raise ValueError(f"Unknown emotion: {value}")
    return emotion


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class EmotionCreate(BaseModel):
    """Payload for logging a new emotion entry."""

    emotion: str = Field(..., description="English or Ukrainian emotion word.")
    intensity: RawIntensity = Field(
        ...,
        description="Level name (any case) or a score 1-5, number or string.",
    )
    description: Optional[str] = Field(default=None, max_length=1000)
    triggers: list[str] = Field(default_factory=list)
    location: Optional[str] = Field(default=None, max_length=100)
    weather: Optional[str] = Field(default=None, max_length=50)
    activities: list[str] = Field(default_factory=list)
    sleep_hours: Optional[float] = Field(default=None, ge=0, le=24)
    stress_level: Optional[int] = Field(
        default=None,
        description="1-10. Out-of-range numbers are clamped, decimals rounded.",
    )
    mood_before: Optional[EmotionType] = None
    mood_after: Optional[EmotionType] = None
    tags: list[str] = Field(default_factory=list)
    is_private: bool = False
    doctor_id: Optional[str] = None
    recorded_at: Optional[datetime] = None

    @field_validator("triggers", "activities")
    @classmethod
    def _short_items(cls, v: list[str], info) -> list[str]:
        return _check_items(v, 100, info.field_name)

    @field_validator("tags")
    @classmethod
    def _short_tags(cls, v: list[str]) -> list[str]:
        return _check_items(v, 50, "tag")

    @field_validator("stress_level", mode="before")
    @classmethod
    def _stress(cls, v: Any) -> Optional[int]:
        return _clamp_stress(v)

    @field_validator("mood_before", "mood_after", mode="before")
    @classmethod
    def _moods(cls, v: Any) -> Optional[EmotionType]:
        return _mood_word(v)


class EmotionUpdate(BaseModel):
    """Partial update: only fields that are sent are changed."""

    emotion: Optional[str] = None
    intensity: Optional[RawIntensity] = None
    description: Optional[str] = Field(default=None, max_length=1000)
    triggers: Optional[list[str]] = None
    location: Optional[str] = Field(default=None, max_length=100)
    weather: Optional[str] = Field(default=None, max_length=50)
    activities: Optional[list[str]] = None
    sleep_hours: Optional[float] = Field(default=None, ge=0, le=24)
    stress_level: Optional[int] = None
    mood_before: Optional[EmotionType] = None
    mood_after: Optional[EmotionType] = None
    tags: Optional[list[str]] = None
    is_private: Optional[bool] = None
    recorded_at: Optional[datetime] = None

    @field_validator("triggers", "activities")
    @classmethod
    def _short_items(cls, v: Optional[list[str]], info) -> Optional[list[str]]:
        return _check_items(v, 100, info.field_name)

    @field_validator("tags")
    @classmethod
    def _short_tags(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_items(v, 50, "tag")

    @field_validator("stress_level", mode="before")
    @classmethod
    def _stress(cls, v: Any) -> Optional[int]:
        return _clamp_stress(v)

    @field_validator("mood_before", "mood_after", mode="before")
    @classmethod
    def _moods(cls, v: Any) -> Optional[EmotionType]:
        return _mood_word(v)


class InstantRecommendationRequest(BaseModel):
    """A one-off "how do I feel right now" request. Nothing is stored."""

    emotion: str
    intensity: RawIntensity = Field(..., description="1-10 scale or a level name.")
    triggers: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    notes: Optional[str] = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class SortField(str, Enum):
    RECORDED_AT = "recorded_at"
    INTENSITY = "intensity"
    STRESS_LEVEL = "stress_level"
    EMOTION = "emotion"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class EmotionFilters(BaseModel):
    """Query filters for listing entries. Values are already normalised."""

    user_id: Optional[str] = None
    doctor_id: Optional[str] = None
    emotions: Optional[list[EmotionType]] = None
    intensity: Optional[IntensityLevel] = None
    min_stress_level: Optional[int] = Field(default=None, ge=1, le=10)
    max_stress_level: Optional[int] = Field(default=None, ge=1, le=10)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    time_range: Optional[TimeRange] = None
    tags: Optional[list[str]] = None
    triggers: Optional[list[str]] = None
    is_private: Optional[bool] = None
    limit: int = Field(default=50, ge=1, le=100)
    skip: int = Field(default=0, ge=0)
    sort_by: SortField = SortField.RECORDED_AT
    sort_order: SortOrder = SortOrder.DESC


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class EmotionResponse(BaseModel):
    id: str
    user_id: str
    doctor_id: Optional[str] = None
    emotion: str
    emotion_ukrainian: str
    intensity: str
    intensity_score: Optional[int] = None
    intensity_description: str
    description: Optional[str] = None
    triggers: list[str] = Field(default_factory=list)
    location: Optional[str] = None
    weather: Optional[str] = None
    activities: list[str] = Field(default_factory=list)
    sleep_hours: Optional[float] = None
    stress_level: Optional[int] = None
    mood_before: Optional[str] = None
    mood_after: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    is_private: bool = False
    recorded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("triggers", "activities", "tags", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return v or []


class EmotionListResponse(BaseModel):
    data: list[EmotionResponse]
    total: int = Field(..., description="Entries matching the filters, ignoring limit/skip.")
    count: int = Field(..., description="Entries in this page.")


class TrendPoint(BaseModel):
    date: str
    count: int
    emotions: list[str]
    intensities: list[str]
    average_stress_level: Optional[float] = None


class EmotionStats(BaseModel):
    total_entries: int
    average_stress_level: float
    average_intensity: float
    most_common_emotion: Optional[str] = None
    most_common_intensity: Optional[str] = None
    emotion_distribution: dict[str, int]
    intensity_distribution: dict[str, int]
    trends_over_time: list[TrendPoint] = Field(default_factory=list)


class EmotionPattern(BaseModel):
    emotion: str
    intensity: str
    hour: int = Field(..., ge=0, le=23)
    day_of_week: int = Field(..., ge=1, le=7, description="ISO weekday, 1 = Monday.")
    count: int
    average_stress_level: Optional[float] = None


class IntensityLevelInfo(BaseModel):
    level: str
    score: int
    description: str


class IntensityLevelsResponse(BaseModel):
    levels: list[IntensityLevelInfo]
    valid_inputs: list[str]
