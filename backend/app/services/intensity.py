"""
Intensity Normalisation
=======================
Two numeric scales coexist in the API:

- Emotion **intensity** is stored as one of five levels (VERY_LOW ... VERY_HIGH).
  Clients may send the level name in any case, or its score 1-5 as a number
  or a numeric string.
- **Stress level** (and the intensity of an instant recommendation request)
  is a 1-10 scale. Values are clamped into range and rounded rather than
  rejected, so a slider that overshoots still records something sensible.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Optional

from app.errors import InvalidIntensityLevelError


class IntensityLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


LEVEL_SCORES: dict[IntensityLevel, int] = {
    IntensityLevel.VERY_LOW: 1,
    IntensityLevel.LOW: 2,
    IntensityLevel.MODERATE: 3,
    IntensityLevel.HIGH: 4,
    IntensityLevel.VERY_HIGH: 5,
}

_SCORE_TO_LEVEL = {score: level for level, score in LEVEL_SCORES.items()}

_DESCRIPTIONS: dict[IntensityLevel, str] = {
    IntensityLevel.VERY_LOW: "Very Low - Barely noticeable emotion",
    IntensityLevel.LOW: "Low - Mild emotional response",
    IntensityLevel.MODERATE: "Moderate - Noticeable but manageable",
    IntensityLevel.HIGH: "High - Strong emotional response",
    IntensityLevel.VERY_HIGH: "Very High - Overwhelming emotion",
}

SCALE_MIN = 1
SCALE_MAX = 10
SCALE_DEFAULT = 5


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def to_level(value: Any) -> Optional[IntensityLevel]:
    """Convert a score (1-5) or a level name into an IntensityLevel.

    Returns None for anything that is not a recognised level.
    """
    if isinstance(value, IntensityLevel):
        return value

    number = _as_number(value)
    if number is not None and math.isfinite(number) and number.is_integer():
        return _SCORE_TO_LEVEL.get(int(number))

    if isinstance(value, str):
        try:
            return IntensityLevel(value.strip().upper())
        except ValueError:
            return None
    return None


def prepare_for_save(value: Any) -> IntensityLevel:
    level = to_level(value)
    if level is None:
        raise InvalidIntensityLevelError(
            f"Invalid intensity value: {value}. Must be a number 1-5 or a level "
            "(VERY_LOW, LOW, MODERATE, HIGH, VERY_HIGH)",
            valid_levels=[lvl.value for lvl in IntensityLevel],
        )
    return level


def is_valid(value: Any) -> bool:
    return to_level(value) is not None


def score(level: Any) -> Optional[int]:
    resolved = to_level(level)
    return LEVEL_SCORES[resolved] if resolved else None


def describe(level: Any) -> str:
    resolved = to_level(level)
    return _DESCRIPTIONS[resolved] if resolved else "Invalid intensity level"


def all_levels() -> list[dict]:
    return [
        {"level": level.value, "score": LEVEL_SCORES[level], "description": _DESCRIPTIONS[level]}
        for level in IntensityLevel
    ]


def valid_inputs() -> list[str]:
    return [
        "Numbers: 1, 2, 3, 4, 5",
        "String numbers: '1', '2', '3', '4', '5'",
        "Levels: 'VERY_LOW', 'LOW', 'MODERATE', 'HIGH', 'VERY_HIGH'",
        "Case insensitive: 'very_low', 'high', 'Moderate'",
    ]


def normalize_scale(value: Any, default: Optional[int] = SCALE_DEFAULT) -> Optional[int]:
    """Clamp a 1-10 reading into range, rounding half up.

    Unparseable or non-finite input gives ``default``.
    """
    number = _as_number(value)
    if number is None or not math.isfinite(number):
        return default
    if number < SCALE_MIN:
        return SCALE_MIN
    if number > SCALE_MAX:
        return SCALE_MAX
    return int(math.floor(number + 0.5))


def is_valid_scale(value: Any) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and SCALE_MIN <= value <= SCALE_MAX
    )
