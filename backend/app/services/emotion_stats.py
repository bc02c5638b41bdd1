"""
Emotion Statistics
==================
Aggregates over a user's emotion entries: totals, averages, zero-filled
distributions, per-day trends and recurring (emotion, intensity, hour,
weekday) patterns.

Everything here is a pure function over the row dicts returned by
Supabase, so the same code serves the stats endpoint, the AI analysis
prompts and the rule-based fallbacks. All timestamps are bucketed in UTC.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

import pandas as pd

from app.services import intensity as intensity_levels
from app.services.intensity import LEVEL_SCORES, IntensityLevel
from app.services.vocabulary import EmotionType, to_english

logger = logging.getLogger(__name__)

_EMOTION_ORDER = [e.value for e in EmotionType]
_LEVEL_ORDER = [lvl.value for lvl in IntensityLevel]
_SCORE_BY_NAME = {lvl.value: s for lvl, s in LEVEL_SCORES.items()}


class TimeRange(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


def time_range_start(time_range: TimeRange | str, now: Optional[datetime] = None) -> datetime:
    """Start of the window a named range covers, ending at ``now``."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    time_range = TimeRange(time_range)
    if time_range is TimeRange.TODAY:
        return midnight
    if time_range is TimeRange.WEEK:
        return now - timedelta(days=7)
    if time_range is TimeRange.MONTH:
        return midnight.replace(day=1)
    if time_range is TimeRange.QUARTER:
        first_month = (now.month - 1) // 3 * 3 + 1
        return midnight.replace(month=first_month, day=1)
    return midnight.replace(month=1, day=1)


# ---------------------------------------------------------------------------
# Frame construction
# ---------------------------------------------------------------------------

def _frame(rows: Iterable[dict]) -> pd.DataFrame:
    """Normalise raw rows into emotion / intensity / stress / recorded_at columns."""
    df = pd.DataFrame(list(rows))
    for column in ("emotion", "intensity", "stress_level", "recorded_at"):
        if column not in df.columns:
            df[column] = None

    df["emotion"] = df["emotion"].map(lambda v: (to_english(v) or EmotionType.NEUTRAL).value)
    df["intensity"] = df["intensity"].map(
        lambda v: (intensity_levels.to_level(v) or IntensityLevel.MODERATE).value
    )
    df["intensity_score"] = df["intensity"].map(_SCORE_BY_NAME)
    df["stress_level"] = pd.to_numeric(df["stress_level"], errors="coerce")
    df["recorded_at"] = pd.to_datetime(df["recorded_at"], utc=True, format="ISO8601")
    return df


def _rounded_mean(series: pd.Series) -> Optional[float]:
    values = series.dropna()
    if values.empty:
        return None
    return round(float(values.mean()), 2)


def _most_common(series: pd.Series, order: list[str]) -> Optional[str]:
    counts = series.value_counts().reindex(order, fill_value=0)
    if counts.sum() == 0:
        return None
    # idxmax returns the first maximum, so ties resolve to the earlier key
    return str(counts.idxmax())


def _distribution(series: pd.Series, order: list[str]) -> dict[str, int]:
    counts = series.value_counts().reindex(order, fill_value=0)
    return {key: int(count) for key, count in counts.items()}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

def empty_stats() -> dict:
    return {
        "total_entries": 0,
        "average_stress_level": 0.0,
        "average_intensity": 0.0,
        "most_common_emotion": None,
        "most_common_intensity": None,
        "emotion_distribution": {key: 0 for key in _EMOTION_ORDER},
        "intensity_distribution": {key: 0 for key in _LEVEL_ORDER},
        "trends_over_time": [],
    }


def compute_stats(rows: Iterable[dict]) -> dict:
    rows = list(rows)
    if not rows:
        return empty_stats()

    df = _frame(rows)

    return {
        "total_entries": int(len(df)),
        "average_stress_level": _rounded_mean(df["stress_level"]) or 0.0,
        "average_intensity": _rounded_mean(df["intensity_score"]) or 0.0,
        "most_common_emotion": _most_common(df["emotion"], _EMOTION_ORDER),
        "most_common_intensity": _most_common(df["intensity"], _LEVEL_ORDER),
        "emotion_distribution": _distribution(df["emotion"], _EMOTION_ORDER),
        "intensity_distribution": _distribution(df["intensity"], _LEVEL_ORDER),
        "trends_over_time": _trends(df),
    }


def _trends(df: pd.DataFrame) -> list[dict]:
    dated = df.dropna(subset=["recorded_at"]).sort_values("recorded_at", kind="mergesort")
    if dated.empty:
        return []

    dated = dated.assign(day=dated["recorded_at"].dt.date)
    trends = []
    for day, group in dated.groupby("day", sort=True):
        trends.append({
            "date": day.isoformat(),
            "count": int(len(group)),
            "emotions": group["emotion"].tolist(),
            "intensities": group["intensity"].tolist(),
            "average_stress_level": _rounded_mean(group["stress_level"]),
        })
    return trends


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

def compute_patterns(rows: Iterable[dict]) -> list[dict]:
    """Group entries by (emotion, intensity, UTC hour, ISO weekday).

    ``day_of_week`` is 1 for Monday through 7 for Sunday. Groups are
    ordered by count, most frequent first.
    """
    rows = list(rows)
    if not rows:
        return []

    df = _frame(rows).dropna(subset=["recorded_at"])
    if df.empty:
        return []

    df = df.assign(
        hour=df["recorded_at"].dt.hour,
        day_of_week=df["recorded_at"].dt.dayofweek + 1,
    )

    grouped = (
        df.groupby(["emotion", "intensity", "hour", "day_of_week"], sort=True)
        .agg(count=("emotion", "size"), average_stress_level=("stress_level", "mean"))
        .reset_index()
        .sort_values("count", ascending=False, kind="mergesort")
    )

    patterns = []
    for record in grouped.to_dict(orient="records"):
        stress = record["average_stress_level"]
        patterns.append({
            "emotion": record["emotion"],
            "intensity": record["intensity"],
            "hour": int(record["hour"]),
            "day_of_week": int(record["day_of_week"]),
            "count": int(record["count"]),
            "average_stress_level": None if pd.isna(stress) else round(float(stress), 2),
        })

    logger.debug("Computed %d emotion patterns from %d entries", len(patterns), len(df))
    return patterns

