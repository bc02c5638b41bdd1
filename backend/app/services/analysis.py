"""
Analysis Service
================
Emotional analysis, recommendations and an overall summary for a user's
entries, produced by the Claude API with a rule-based fallback.

DATA PROTECTION:
    Prompts are built from enumerated fields and aggregates only: the
    emotion, intensity level, stress level and date of recent entries,
    plus the distributions from ``emotion_stats``. Free-text fields
    (description, notes, location, triggers typed by the user) never
    leave the backend, and neither does any user identifier.

FALLBACK:
    The rule-based path runs when no API key is configured, the
    ``enable_ai_analysis`` kill switch is off, or the API call fails.
    A reply that arrives but is not valid JSON gives a degraded result
    carrying a snippet of the reply, matching what the web app already
    renders for a partially failed analysis.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.config import Settings, get_settings
from app.models.analysis import AnalysisResult, OverallSummary, RecommendationResult
from app.services import emotion_stats
from app.services import intensity as intensity_levels
from app.services.intensity import IntensityLevel
from app.services.vocabulary import NEGATIVE_EMOTIONS, POSITIVE_EMOTIONS, EmotionType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_RECENT_ENTRIES = 10

_SYSTEM_PROMPT = """\
You are a supportive mental health assistant inside a mood tracking app. \
You receive aggregated emotion data and return structured insights and \
recommendations.

Rules:
- Return ONLY valid JSON with no markdown formatting, no backticks, no explanation.
- Be supportive and professional. Never diagnose.
- Intensity levels are strings: VERY_LOW, LOW, MODERATE, HIGH, VERY_HIGH.
- Stress levels are numbers from 1 (none) to 10 (extreme).
"""

_ANALYSIS_SCHEMA = """\
{
  "insights": [<key insights about emotional patterns>],
  "trends": [<observed trends>],
  "concerns": [<potential concerns>],
  "positives": [<positive observations>],
  "emotional_balance": "<overall assessment of emotional balance>",
  "risk_factors": [<risk factors to monitor>]
}"""

_RECOMMENDATION_SCHEMA = """\
{
  "immediate": [<actions to take today>],
  "short_term": [<actions for the next week>],
  "long_term": [<long-term strategies>],
  "professional_help": <true if professional help is recommended>,
  "resources": [<helpful resources or techniques>],
  "coping": [<coping strategies>]
}"""

_SUMMARY_SCHEMA = """\
{
  "emotional_wellbeing": "<overall wellbeing assessment>",
  "key_insights": [<most important insights>],
  "action_plan": [<prioritised action items>],
  "progress": "<assessment of emotional progress>",
  "next_steps": [<next steps to take>]
}"""


# ---------------------------------------------------------------------------
# Rule-based fallback
# ---------------------------------------------------------------------------

def _count(distribution: dict[str, int], keys) -> int:
    return sum(int(distribution.get(getattr(k, "value", k), 0)) for k in keys)


def _high_intensity_count(stats: dict) -> int:
    return _count(stats["intensity_distribution"], (IntensityLevel.HIGH, IntensityLevel.VERY_HIGH))


def basic_analysis(stats: dict) -> AnalysisResult:
    insights: list[str] = []
    concerns: list[str] = []
    positives: list[str] = []
    risk_factors: list[str] = []

    total = stats["total_entries"]
    high = _high_intensity_count(stats)

    if high > total * 0.6:
        insights.append("Your emotions tend to be highly intense")
        concerns.append("High emotional intensity may indicate stress")
    elif high < total * 0.2:
        insights.append("Your emotional responses are generally mild")
        positives.append("You maintain emotional stability")

    stress = stats["average_stress_level"]
    if stress > 7:
        concerns.append("Elevated stress levels detected")
        risk_factors.append("Chronic high stress")
    elif 0 < stress < 4:
        positives.append("Well-managed stress levels")

    negative = _count(stats["emotion_distribution"], NEGATIVE_EMOTIONS)
    if negative > total * 0.6:
        concerns.append("High frequency of negative emotions")
        risk_factors.append("Persistent negative mood patterns")
    else:
        positives.append("Good emotional balance maintained")

    if total > 20:
        insights.append("Consistent emotion tracking shows good self-awareness")
        positives.append("Regular emotional check-ins")
    elif total < 5:
        insights.append("Limited tracking data available")

    most_common = stats.get("most_common_intensity")
    if most_common == IntensityLevel.VERY_HIGH.value:
        concerns.append("Predominant very high intensity emotions")
        risk_factors.append("Emotional overwhelm patterns")
    elif most_common == IntensityLevel.MODERATE.value:
        positives.append("Balanced emotional intensity levels")

    return AnalysisResult(
        insights=insights,
        trends=_basic_trends(stats),
        concerns=concerns,
        positives=positives,
        emotional_balance="Needs attention" if len(concerns) > len(positives) else "Generally balanced",
        risk_factors=risk_factors,
    )


def _basic_trends(stats: dict) -> list[str]:
    days = stats.get("trends_over_time") or []
    if len(days) < 2:
        return ["Tracking period may be too short for trend analysis"]

    stressed = [d["average_stress_level"] for d in days if d.get("average_stress_level") is not None]
    if len(stressed) >= 2:
        half = len(stressed) // 2
        earlier = sum(stressed[:half]) / half
        later = sum(stressed[half:]) / (len(stressed) - half)
        if later < earlier - 0.5:
            return ["Stress levels have been easing over the period"]
        if later > earlier + 0.5:
            return ["Stress levels have been rising over the period"]
    return [f"Emotions logged on {len(days)} different days"]


def basic_recommendations(stats: dict) -> RecommendationResult:
    immediate: list[str] = []
    short_term: list[str] = []
    long_term: list[str] = []
    resources: list[str] = []
    coping: list[str] = []
    professional_help = False

    total = stats["total_entries"]
    distribution = stats["emotion_distribution"]

    if stats["average_stress_level"] > 7:
        immediate += ["Practice deep breathing exercises", "Take short breaks throughout the day"]
        short_term.append("Consider stress management techniques")
        professional_help = True

    if _high_intensity_count(stats) > total * 0.5:
        immediate.append("Use grounding techniques")
        coping.append("5-4-3-2-1 sensory grounding exercise")
        short_term.append("Practice emotional regulation skills")

    if _count(distribution, (EmotionType.SAD,)) > total * 0.3:
        immediate.append("Engage in activities you enjoy")
        short_term.append("Connect with supportive friends or family")
        long_term.append("Consider counseling or therapy")
        professional_help = True

    if _count(distribution, (EmotionType.ANXIOUS,)) > total * 0.3:
        immediate.append("Practice mindfulness meditation")
        coping.append("Progressive muscle relaxation")
        resources.append("Meditation apps like Headspace or Calm")

    if _count(distribution, (EmotionType.OVERWHELMED,)) > total * 0.2:
        immediate.append("Break tasks into smaller, manageable steps")
        short_term.append("Practice saying no to additional commitments")
        coping.append("Time management and prioritization techniques")

    long_term += ["Maintain regular exercise routine", "Establish consistent sleep schedule"]
    resources += ["Journal writing for emotional processing", "Mental health support groups"]

    if _count(distribution, POSITIVE_EMOTIONS) < total * 0.3:
        short_term.append("Schedule enjoyable activities")
        long_term.append("Build positive social connections")
        resources.append("Gratitude practice exercises")

    return RecommendationResult(
        immediate=immediate,
        short_term=short_term,
        long_term=long_term,
        professional_help=professional_help,
        resources=resources,
        coping=coping,
    )


_INTENSITY_FACTORS = {
    IntensityLevel.VERY_LOW.value: 0.8,
    IntensityLevel.LOW.value: 0.8,
    IntensityLevel.MODERATE.value: 0.6,
    IntensityLevel.HIGH.value: 0.4,
    IntensityLevel.VERY_HIGH.value: 0.2,
}


def wellbeing_score(stats: dict) -> float:
    """0-10 score: positive share (weight 4), intensity (3) and stress (3)."""
    total = stats["total_entries"]
    positive_ratio = _count(stats["emotion_distribution"], POSITIVE_EMOTIONS) / total if total else 0.0
    intensity_factor = _INTENSITY_FACTORS.get(stats.get("most_common_intensity"), 0.5)

    stress = stats["average_stress_level"]
    # 0 means no stress readings were logged
    stress_factor = (11 - stress) / 10 if stress else 0.5

    return round(positive_ratio * 4 + intensity_factor * 3 + stress_factor * 3, 1)


def wellbeing_label(score: float) -> str:
    if score > 7:
        return "Good"
    if score > 4:
        return "Fair"
    return "Needs attention"


def basic_summary(
    stats: dict,
    analysis: AnalysisResult,
    recommendations: RecommendationResult,
) -> OverallSummary:
    most_common = stats.get("most_common_intensity") or "n/a"
    return OverallSummary(
        emotional_wellbeing=wellbeing_label(wellbeing_score(stats)),
        key_insights=analysis.insights[:3],
        action_plan=recommendations.immediate + recommendations.short_term[:2],
        progress=f"Tracked {stats['total_entries']} emotions with most common intensity of {most_common}",
        next_steps=recommendations.long_term[:3],
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class AnalysisService:
    """Claude-backed analysis with a rule-based fallback on every path."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._api_url = "https://api.anthropic.com/v1/messages"

    @property
    def ai_enabled(self) -> bool:
        return bool(self._settings.anthropic_api_key) and self._settings.enable_ai_analysis

    async def analyze(self, entries: list[dict], stats: dict, patterns: list[dict]) -> AnalysisResult:
        if not self.ai_enabled:
            return basic_analysis(stats)

        prompt = "\n\n".join([
            "Analyze the following emotional data and provide insights.",
            _stats_block(stats),
            "Recent entries:\n" + json.dumps(_recent(entries), indent=2),
            "Most frequent patterns (ISO weekday, UTC hour):\n" + json.dumps(patterns[:10], indent=2),
            "Respond with JSON matching:\n" + _ANALYSIS_SCHEMA,
        ])
        try:
            reply = await self._call_claude_api(prompt)
        except Exception:
            logger.exception("Claude API call failed for emotion analysis, using rule-based analysis")
            return basic_analysis(stats)

        return self._parse(reply, AnalysisResult, lambda snippet: AnalysisResult(
            insights=[snippet[:200]],
            trends=["Unable to parse detailed trends"],
            emotional_balance="Analysis pending",
        ))

    async def recommend(self, entries: list[dict], stats: dict) -> RecommendationResult:
        if not self.ai_enabled:
            return basic_recommendations(stats)

        prompt = "\n\n".join([
            "Based on this emotional data, provide personalised recommendations.",
            _stats_block(stats),
            "Recent entries:\n" + json.dumps(_recent(entries), indent=2),
            "Respond with JSON matching:\n" + _RECOMMENDATION_SCHEMA,
        ])
        try:
            reply = await self._call_claude_api(prompt)
        except Exception:
            logger.exception("Claude API call failed for recommendations, using rule-based recommendations")
            return basic_recommendations(stats)

        return self._parse(reply, RecommendationResult, lambda snippet: RecommendationResult(
            immediate=[snippet[:100]],
        ))

    async def summarize(
        self,
        stats: dict,
        analysis: AnalysisResult,
        recommendations: RecommendationResult,
    ) -> OverallSummary:
        if not self.ai_enabled:
            return basic_summary(stats, analysis, recommendations)

        key_stats = {
            "total_entries": stats["total_entries"],
            "most_common_intensity": stats.get("most_common_intensity"),
            "dominant_emotion": stats.get("most_common_emotion"),
            "average_stress_level": stats["average_stress_level"],
        }
        prompt = "\n\n".join([
            "Create an overall summary based on this emotional health data.",
            "Key stats: " + json.dumps(key_stats),
            "Analysis insights: " + ", ".join(analysis.insights),
            "Main concerns: " + ", ".join(analysis.concerns),
            "Recommendations: " + ", ".join(recommendations.immediate + recommendations.short_term),
            "Respond with JSON matching:\n" + _SUMMARY_SCHEMA,
        ])
        try:
            reply = await self._call_claude_api(prompt)
        except Exception:
            logger.exception("Claude API call failed for summary, using rule-based summary")
            return basic_summary(stats, analysis, recommendations)

        return self._parse(reply, OverallSummary, lambda snippet: OverallSummary(
            emotional_wellbeing=snippet[:200],
            progress="Summary in progress",
        ))

    async def instant_recommendation(
        self,
        emotion: EmotionType,
        intensity: int,
        triggers: Optional[list[str]] = None,
        tags: Optional[list[str]] = None,
        notes: Optional[str] = None,
    ) -> RecommendationResult:
        """Recommendations for a single feeling described right now.

        ``intensity`` is on the 1-10 scale. Triggers, tags and notes are
        free text and stay out of the prompt; only the emotion and level
        are analysed.
        """
        level = scale_to_level(intensity)
        entry = {"emotion": emotion.value, "intensity": level.value, "recorded_at": None}
        stats = emotion_stats.compute_stats([entry])
        logger.debug(
            "Instant recommendation for %s at %d/10 (%d triggers, %d tags, notes=%s)",
            emotion.value, intensity, len(triggers or []), len(tags or []), bool(notes),
        )
        return await self.recommend([entry], stats)

    async def _call_claude_api(self, prompt: str) -> str:
        headers = {
            "x-api-key": self._settings.anthropic_api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

        payload = {
            "model": self._settings.anthropic_model,
            "max_tokens": self._settings.anthropic_max_tokens,
            "system": _SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(self._api_url, headers=headers, json=payload)
            response.raise_for_status()

        data = response.json()
        text_parts = [
            block["text"]
            for block in data.get("content", [])
            if block.get("type") == "text"
        ]
        return "\n".join(text_parts)

    @staticmethod
    def _parse(raw_response: str, model: type[ModelT], degraded) -> ModelT:
        try:
            return model.model_validate(extract_json(raw_response))
        except (ValueError, ValidationError):
            logger.warning(
                "Unparseable Claude reply for %s: %s",
                model.__name__, raw_response[:200] if raw_response else "empty",
            )
            return degraded(raw_response or "")


def extract_json(raw_response: str) -> Any:
    """Pull the JSON object out of a reply that may be fenced or padded."""
    text = raw_response.strip()

    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    text = text.strip()

    if not text.startswith("{"):
        start = text.find("{")
        end = text.rfind("}") + 1
        if start != -1 and end > start:
            text = text[start:end]

    return json.loads(text)


def scale_to_level(value: int) -> IntensityLevel:
    """Map the 1-10 scale onto the five levels (1-2 VERY_LOW ... 9-10 VERY_HIGH)."""
    score = math.ceil(intensity_levels.normalize_scale(value) / 2)
    return intensity_levels.to_level(score)


def _recent(entries: list[dict]) -> list[dict]:
    return [
        {
            "emotion": e.get("emotion"),
            "intensity": e.get("intensity"),
            "stress_level": e.get("stress_level"),
            "date": e.get("recorded_at"),
        }
        for e in entries[:_RECENT_ENTRIES]
    ]


def _stats_block(stats: dict) -> str:
    return "\n".join([
        "Stats:",
        f"- Total entries: {stats['total_entries']}",
        f"- Most common intensity: {stats.get('most_common_intensity')}",
        f"- Most common emotion: {stats.get('most_common_emotion')}",
        f"- Average stress level: {stats['average_stress_level']}",
        f"- Average intensity score (1-5): {stats['average_intensity']}",
        "Emotion distribution: " + json.dumps(stats["emotion_distribution"]),
        "Intensity distribution: " + json.dumps(stats["intensity_distribution"]),
    ])


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_service: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    global _default_service
    if _default_service is None:
        _default_service = AnalysisService()
    return _default_service
