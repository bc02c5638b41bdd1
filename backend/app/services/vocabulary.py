"""
Emotion Vocabulary
==================
The canonical emotion vocabulary and its Ukrainian counterpart.

Entries are always stored with the English value. Clients may send either
language; the Ukrainian word is added back to every response so the web app
can render it without keeping its own copy of the table.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class EmotionType(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    ANXIOUS = "anxious"
    EXCITED = "excited"
    CALM = "calm"
    FRUSTRATED = "frustrated"
    GRATEFUL = "grateful"
    LONELY = "lonely"
    CONFIDENT = "confident"
    OVERWHELMED = "overwhelmed"
    PEACEFUL = "peaceful"
    JOYFUL = "joyful"
    SATISFIED = "satisfied"
    NEUTRAL = "neutral"
    TIRED = "tired"


TO_UKRAINIAN: dict[EmotionType, str] = {
    EmotionType.HAPPY: "щасливий",
    EmotionType.SAD: "сумний",
    EmotionType.ANGRY: "злий",
    EmotionType.ANXIOUS: "тривожний",
    EmotionType.EXCITED: "збуджений",
    EmotionType.CALM: "спокійний",
    EmotionType.FRUSTRATED: "розчарований",
    EmotionType.GRATEFUL: "вдячний",
    EmotionType.LONELY: "самотній",
    EmotionType.CONFIDENT: "впевнений",
    EmotionType.OVERWHELMED: "перевантажений",
    EmotionType.PEACEFUL: "умиротворений",
    EmotionType.JOYFUL: "радісний",
    EmotionType.SATISFIED: "задоволений",
    EmotionType.NEUTRAL: "нейтральний",
    EmotionType.TIRED: "втомлений",
}

TO_ENGLISH: dict[str, EmotionType] = {uk: en for en, uk in TO_UKRAINIAN.items()}

POSITIVE_EMOTIONS = frozenset({
    EmotionType.HAPPY,
    EmotionType.EXCITED,
    EmotionType.CALM,
    EmotionType.GRATEFUL,
    EmotionType.CONFIDENT,
    EmotionType.PEACEFUL,
    EmotionType.JOYFUL,
    EmotionType.SATISFIED,
})

NEGATIVE_EMOTIONS = frozenset({
    EmotionType.SAD,
    EmotionType.ANGRY,
    EmotionType.ANXIOUS,
    EmotionType.FRUSTRATED,
    EmotionType.OVERWHELMED,
    EmotionType.LONELY,
})

_ENGLISH_VALUES = {e.value: e for e in EmotionType}


def to_english(value: object) -> Optional[EmotionType]:
    """Return the canonical emotion for an English or Ukrainian word.

    Matching ignores case and surrounding whitespace. Unknown words (and
    non-strings) give None so callers decide between rejecting and
    defaulting.
    """
    if isinstance(value, EmotionType):
        return value
    if not isinstance(value, str):
        return None

    word = value.strip().lower()
    return _ENGLISH_VALUES.get(word) or TO_ENGLISH.get(word)


def to_ukrainian(emotion: object) -> str:
    canonical = to_english(emotion)
    if canonical is None:
        return TO_UKRAINIAN[EmotionType.NEUTRAL]
    return TO_UKRAINIAN[canonical]


def is_valid_emotion(value: object) -> bool:
    return to_english(value) is not None


def english_emotions() -> list[str]:
    return [e.value for e in EmotionType]


def ukrainian_emotions() -> list[str]:
    return [TO_UKRAINIAN[e] for e in EmotionType]
