"""
Analysis Schemas
================
Structured output of the AI analysis, recommendation and summary calls,
plus the envelopes the emotion routes return them in.

The same models describe both the Claude output and the rule-based
fallback, so clients never need to know which one produced a response.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.emotion import EmotionStats


class AnalysisResult(BaseModel):
    insights: list[str] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    positives: list[str] = Field(default_factory=list)
    emotional_balance: str = ""
    risk_factors: list[str] = Field(default_factory=list)


class RecommendationResult(BaseModel):
    immediate: list[str] = Field(default_factory=list)
    short_term: list[str] = Field(default_factory=list)
    long_term: list[str] = Field(default_factory=list)
    professional_help: bool = False
    resources: list[str] = Field(default_factory=list)
    coping: list[str] = Field(default_factory=list)


class OverallSummary(BaseModel):
    emotional_wellbeing: str = ""
    key_insights: list[str] = Field(default_factory=list)
    action_plan: list[str] = Field(default_factory=list)
    progress: str = ""
    next_steps: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Route envelopes
# ---------------------------------------------------------------------------

class StatsDigest(BaseModel):
    """The handful of stats echoed next to an analysis or recommendation."""

    time_range: str
    entries_analyzed: int
    average_intensity: float
    most_common_intensity: Optional[str] = None
    most_common_emotion: Optional[str] = None


class AnalysisResponse(BaseModel):
    analysis: AnalysisResult
    based_on: StatsDigest


class RecommendationsResponse(BaseModel):
    recommendations: RecommendationResult
    based_on: StatsDigest


class StreakSnapshot(BaseModel):
    current_streak: int
    longest_streak: int
    total_mood_tracked: int
    streak_start_date: Optional[str] = None
    is_active: bool


class SummaryMetadata(StatsDigest):
    generated_at: datetime


class SummaryResponse(BaseModel):
    summary: OverallSummary
    analysis: AnalysisResult
    recommendations: RecommendationResult
    stats: EmotionStats
    streak: Optional[StreakSnapshot] = None
    metadata: SummaryMetadata


class InstantBasis(BaseModel):
    emotion: str = Field(..., description="Ukrainian emotion word.")
    emotion_english: str
    intensity: int = Field(..., ge=1, le=10)
    triggers: list[str] = Field(default_factory=list)


class InstantRecommendationResponse(BaseModel):
    recommendations: RecommendationResult
    based_on: InstantBasis
