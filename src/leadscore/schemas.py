"""Pydantic schemas for lead profiles, scores, batches and telemetry."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EngagementLevel = Literal["low", "medium", "high"]
EngagementTrend = Literal["increasing", "stable", "decreasing"]
RiskLevel = Literal["low", "medium", "high"]
Priority = Literal["high", "medium", "low"]
BatchStatus = Literal["processing", "completed", "failed"]
HealthState = Literal["healthy", "degraded", "unhealthy"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeadProfile(BaseModel):
    """Identity plus behavioural attributes used as model input."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    phone: str | None = None
    lead_score: float = Field(default=0.0, ge=0, le=100)
    engagement_level: EngagementLevel = "medium"
    property_type: str | None = None
    budget_range: str | None = None
    timeline: str | None = None
    location: str | None = None
    source: str = "website"
    created_at: datetime
    last_activity: datetime
    total_interactions: int = Field(default=0, ge=0)
    conversion_events: int = Field(default=0, ge=0)
    behavioral_score: float | None = Field(default=None, ge=0, le=1)


class FeatureContribution(BaseModel):
    model_config = ConfigDict(frozen=True)

    feature: str
    importance: float
    value: float
    contribution: float


class ScoreExplanation(BaseModel):
    """Attribution attached to a score when the gateway can provide it."""

    model_config = ConfigDict(frozen=True)

    top_features: list[FeatureContribution] = Field(default_factory=list)
    risk_factors: list[str] = Field(default_factory=list)


class MLLeadScore(BaseModel):
    """Result of a single scoring attempt. Immutable and safe to share from cache."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    lead_id: int
    score: float = Field(ge=0, le=1)
    confidence: float = Field(ge=0, le=1)
    model_id: str
    model_version: str = "unknown"
    scored_at: datetime = Field(default_factory=utcnow)
    features_used: list[str] = Field(default_factory=list)
    prediction: Literal["high_value", "low_value"]
    insights: list[str] = Field(min_length=1)
    explanation: ScoreExplanation | None = None


class BatchError(BaseModel):
    lead_id: int
    error: str


class BatchScoringResult(BaseModel):
    """Snapshot of a batch request; ``processing`` snapshots carry interim totals."""

    model_config = ConfigDict(protected_namespaces=())

    request_id: str
    status: BatchStatus
    priority: Priority = "medium"
    model_id: str | None = None
    total_leads: int
    processed_leads: int
    results: list[MLLeadScore] = Field(default_factory=list)
    errors: list[BatchError] = Field(default_factory=list)
    processing_time: float = 0.0
    completed_at: datetime | None = None


class KeyFactor(BaseModel):
    feature: str
    importance: float
    value: float
    contribution: Literal["positive", "negative", "neutral"]
    description: str


class TimeToAction(BaseModel):
    urgent: bool
    recommended: str
    deadline: datetime


class EngagementSummary(BaseModel):
    level: EngagementLevel
    trend: EngagementTrend
    last_activity: datetime
    next_best_action: str


class SimilarProfile(BaseModel):
    """Another lead whose feature vector sits close to the scored lead's."""

    lead_id: int
    similarity: float = Field(ge=0, le=1)
    engagement_level: EngagementLevel
    common_factors: list[str] = Field(default_factory=list)


class LeadInsights(BaseModel):
    """Human-readable view of a score. Computed per request, never cached."""

    model_config = ConfigDict(protected_namespaces=())

    lead_id: int
    overall_score: float = Field(ge=0, le=1)
    confidence: float = Field(ge=0, le=1)
    conversion_probability: float = Field(ge=0, le=1)
    risk_level: RiskLevel
    recommended_actions: list[str]
    key_factors: list[KeyFactor] = Field(default_factory=list)
    time_to_action: TimeToAction
    engagement: EngagementSummary | None = None
    similar_profiles: list[SimilarProfile] = Field(default_factory=list)
    model_id: str
    generated_at: datetime = Field(default_factory=utcnow)


class TimeRange(BaseModel):
    start: datetime
    end: datetime


class PeakUsage(BaseModel):
    timestamp: datetime
    requests_per_minute: int = 0


class ScoringStatistics(BaseModel):
    total_requests: int
    successful_requests: int
    failed_requests: int
    throttled_requests: int
    success_rate: float
    error_rate: float
    throttle_rate: float
    average_response_time: float
    cache_hit_rate: float
    model_usage: dict[str, int] = Field(default_factory=dict)
    time_range: TimeRange
    peak_usage: PeakUsage


class HealthStatus(BaseModel):
    status: HealthState
    uptime: float
    total_requests: int
    average_response_time: float
    cache_size: int
    queue_length: int
    active_requests: int
    gateway_failure_rate: float
    last_updated: datetime = Field(default_factory=utcnow)


__all__ = [
    "LeadProfile",
    "FeatureContribution",
    "ScoreExplanation",
    "MLLeadScore",
    "BatchError",
    "BatchScoringResult",
    "KeyFactor",
    "TimeToAction",
    "EngagementSummary",
    "SimilarProfile",
    "LeadInsights",
    "TimeRange",
    "PeakUsage",
    "ScoringStatistics",
    "HealthStatus",
    "Priority",
    "utcnow",
]
