"""Pure functions turning scores into human-readable guidance."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta, timezone

import numpy as np

from leadscore.exceptions import LeadNotFound
from leadscore.features import FEATURE_NAMES, build_feature_vector
from leadscore.schemas import (
    EngagementSummary,
    EngagementTrend,
    FeatureContribution,
    KeyFactor,
    LeadInsights,
    LeadProfile,
    MLLeadScore,
    RiskLevel,
    ScoreExplanation,
    SimilarProfile,
    TimeToAction,
    utcnow,
)

HIGH_VALUE_THRESHOLD = 0.8
MEDIUM_VALUE_THRESHOLD = 0.6
STALE_ACTIVITY_DAYS = 30
TOP_FEATURES = 5
RECENT_ACTIVITY_DAYS = 7
SIMILAR_PROFILES = 3
COMMON_FACTOR_TOLERANCE = 0.1

_ACTIONS = {
    "high": [
        "Prioritize for immediate follow-up",
        "Schedule property showing within 24 hours",
        "Prepare personalized offer package",
    ],
    "medium": [
        "Engage within 48 hours",
        "Send property recommendations",
        "Schedule discovery call",
    ],
    "low": [
        "Add to nurture campaign",
        "Send educational content",
        "Monitor for engagement signals",
    ],
}


def _tier(score: float) -> str:
    if score > HIGH_VALUE_THRESHOLD:
        return "high"
    if score > MEDIUM_VALUE_THRESHOLD:
        return "medium"
    return "low"


def risk_level(score: float) -> RiskLevel:
    """Higher conversion probability means lower risk of losing the lead."""

    return {"high": "low", "medium": "medium", "low": "high"}[_tier(score)]  # type: ignore[return-value]


def recommended_actions(score: float) -> list[str]:
    return list(_ACTIONS[_tier(score)])


def recommended_timeframe(score: float) -> str:
    return {"high": "within 24 hours", "medium": "within 48 hours", "low": "within 1 week"}[_tier(score)]


def action_deadline(scored_at: datetime, score: float) -> datetime:
    days = {"high": 1, "medium": 2, "low": 7}[_tier(score)]
    return scored_at + timedelta(days=days)


def summarize_score(probability: float, features: Mapping[str, float] | None = None) -> list[str]:
    """Ordered insight sentences stored on ``MLLeadScore.insights``."""

    tier = _tier(probability)
    if tier == "high":
        insights = ["High conversion probability - prioritize this lead"]
    elif tier == "medium":
        insights = ["Good conversion potential - engage promptly"]
    else:
        insights = ["Lower conversion probability - nurture over time"]

    if not features:
        return insights

    if features.get("engagement_score", 0.0) > HIGH_VALUE_THRESHOLD:
        insights.append("Strong engagement patterns indicate high interest")
    if features.get("behavioral_score", 0.0) > 0.7:
        insights.append("Behavioral signals show active property search")
    idle_days = features.get("days_since_last_activity", 0.0)
    if idle_days > STALE_ACTIVITY_DAYS:
        insights.append(f"No activity for {int(idle_days)} days - may need re-engagement")
    if features.get("conversion_events", 0.0) >= 3:
        insights.append("Highly engaged lead with multiple touchpoints")
    return insights


def explain_prediction(
    contributions: Mapping[str, float] | None,
    features: Mapping[str, float],
) -> ScoreExplanation | None:
    """Build an explanation from per-feature contributions, or None when the model gave none."""

    if not contributions:
        return None

    total = sum(abs(value) for value in contributions.values()) or 1.0
    ranked = sorted(contributions.items(), key=lambda item: abs(item[1]), reverse=True)[:TOP_FEATURES]
    top = [
        FeatureContribution(
            feature=name,
            importance=round(abs(value) / total, 4),
            value=float(features.get(name, 0.0)),
            contribution=round(value, 4),
        )
        for name, value in ranked
    ]

    risk_factors = [f"{_label(name)} lowers conversion likelihood" for name, value in ranked if value < 0]
    if features.get("days_since_last_activity", 0.0) > STALE_ACTIVITY_DAYS:
        risk_factors.append(f"No activity in the last {STALE_ACTIVITY_DAYS} days")
    if features.get("engagement_score", 1.0) < 0.3:
        risk_factors.append("Low engagement level")
    return ScoreExplanation(top_features=top, risk_factors=risk_factors)


def _label(feature: str) -> str:
    return feature.replace("_", " ").capitalize()


def key_factors(explanation: ScoreExplanation | None) -> list[KeyFactor]:
    if explanation is None:
        return []

    factors = []
    for item in explanation.top_features:
        if item.contribution > 1e-9:
            direction, verb = "positive", "increases"
        elif item.contribution < -1e-9:
            direction, verb = "negative", "decreases"
        else:
            direction, verb = "neutral", "does not change"
        factors.append(
            KeyFactor(
                feature=item.feature,
                importance=item.importance,
                value=item.value,
                contribution=direction,
                description=f"{_label(item.feature)} {verb} conversion likelihood",
            )
        )
    return factors


def next_best_action(profile: LeadProfile, score: float) -> str:
    tier = _tier(score)
    if tier == "high":
        return "Call to schedule a showing" if profile.phone else "Email available showing times"
    if tier == "medium":
        if profile.property_type:
            return f"Send {profile.property_type.replace('_', ' ')} listings matching their budget"
        return "Send curated property recommendations"
    return "Enroll in the monthly market update email"


def engagement_trend(profile: LeadProfile, now: datetime | None = None) -> EngagementTrend:
    now = now or utcnow()
    last_activity = profile.last_activity
    if last_activity.tzinfo is None:
        last_activity = last_activity.replace(tzinfo=timezone.utc)
    idle_days = (now - last_activity).total_seconds() / 86_400
    if idle_days <= RECENT_ACTIVITY_DAYS:
        return "increasing"
    if idle_days <= STALE_ACTIVITY_DAYS:
        return "stable"
    return "decreasing"


def find_similar_profiles(
    profile: LeadProfile,
    candidates: list[LeadProfile],
    *,
    limit: int = SIMILAR_PROFILES,
    reference: datetime | None = None,
) -> list[SimilarProfile]:
    """Rank other leads by distance between min-max scaled feature vectors.

    Similarity is ``1 - RMS(feature gaps)``. Features whose scaled gap is within
    ``COMMON_FACTOR_TOLERANCE`` are reported as common factors.
    """

    others = [candidate for candidate in candidates if candidate.id != profile.id]
    if not others or limit <= 0:
        return []

    reference = reference or utcnow()
    rows = [build_feature_vector(item, reference=reference) for item in (profile, *others)]
    matrix = np.array([[row[name] for name in FEATURE_NAMES] for row in rows], dtype=float)

    low = matrix.min(axis=0)
    span = matrix.max(axis=0) - low
    span[span == 0] = 1.0
    scaled = (matrix - low) / span
    gaps = np.abs(scaled[1:] - scaled[0])
    similarity = np.clip(1.0 - np.sqrt((gaps**2).mean(axis=1)), 0.0, 1.0)

    ranked = sorted(range(len(others)), key=lambda index: (-similarity[index], others[index].id))[:limit]
    return [
        SimilarProfile(
            lead_id=others[index].id,
            similarity=round(float(similarity[index]), 3),
            engagement_level=others[index].engagement_level,
            common_factors=[
                name for name, gap in zip(FEATURE_NAMES, gaps[index]) if gap <= COMMON_FACTOR_TOLERANCE
            ],
        )
        for index in ranked
    ]


def derive_insights(
    score: MLLeadScore,
    profile: LeadProfile | None = None,
    *,
    similar_profiles: list[SimilarProfile] | None = None,
    now: datetime | None = None,
) -> LeadInsights:
    if score.lead_id <= 0:
        raise LeadNotFound(score.lead_id)

    now = now or utcnow()
    engagement = None
    if profile is not None:
        engagement = EngagementSummary(
            level=profile.engagement_level,
            trend=engagement_trend(profile, now),
            last_activity=profile.last_activity,
            next_best_action=next_best_action(profile, score.score),
        )

    return LeadInsights(
        lead_id=score.lead_id,
        overall_score=score.score,
        confidence=score.confidence,
        conversion_probability=score.score,
        risk_level=risk_level(score.score),
        recommended_actions=recommended_actions(score.score),
        key_factors=key_factors(score.explanation),
        time_to_action=TimeToAction(
            urgent=score.score > HIGH_VALUE_THRESHOLD,
            recommended=recommended_timeframe(score.score),
            deadline=action_deadline(score.scored_at, score.score),
        ),
        engagement=engagement,
        similar_profiles=similar_profiles or [],
        model_id=score.model_id,
        generated_at=now,
    )


__all__ = [
    "HIGH_VALUE_THRESHOLD",
    "MEDIUM_VALUE_THRESHOLD",
    "action_deadline",
    "derive_insights",
    "engagement_trend",
    "explain_prediction",
    "find_similar_profiles",
    "key_factors",
    "recommended_actions",
    "recommended_timeframe",
    "risk_level",
    "summarize_score",
]
