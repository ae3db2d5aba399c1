"""Flatten lead profiles into the numeric payload model gateways consume."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone

import pandas as pd

from leadscore.schemas import LeadProfile

ENGAGEMENT_LEVELS = {"low": 0.25, "medium": 0.5, "high": 0.85}

SOURCE_QUALITY = {
    "referral": 0.9,
    "open_house": 0.8,
    "website": 0.7,
    "zillow": 0.6,
    "social": 0.5,
    "cold_call": 0.3,
}
DEFAULT_SOURCE_QUALITY = 0.4

FEATURE_NAMES = [
    "lead_score",
    "engagement_score",
    "days_since_first_contact",
    "days_since_last_activity",
    "total_interactions",
    "conversion_events",
    "behavioral_score",
    "source_quality",
    "has_phone",
]


def _days_between(later: datetime, earlier: datetime) -> float:
    if earlier.tzinfo is None:
        earlier = earlier.replace(tzinfo=timezone.utc)
    return max((later - earlier).total_seconds() / 86_400, 0.0)


def build_feature_vector(profile: LeadProfile, *, reference: datetime | None = None) -> dict[str, float]:
    """Return the feature mapping for ``profile`` keyed by ``FEATURE_NAMES``."""

    now = reference or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return {
        "lead_score": profile.lead_score / 100.0,
        "engagement_score": ENGAGEMENT_LEVELS[profile.engagement_level],
        "days_since_first_contact": round(_days_between(now, profile.created_at), 3),
        "days_since_last_activity": round(_days_between(now, profile.last_activity), 3),
        "total_interactions": float(profile.total_interactions),
        "conversion_events": float(profile.conversion_events),
        "behavioral_score": profile.behavioral_score if profile.behavioral_score is not None else 0.0,
        "source_quality": SOURCE_QUALITY.get(profile.source.lower(), DEFAULT_SOURCE_QUALITY),
        "has_phone": 1.0 if profile.phone else 0.0,
    }


class FeatureAligner:
    """Align incoming feature dictionaries with a model's trained columns."""

    def __init__(self, feature_names: Sequence[str] | None = None) -> None:
        self.feature_names = list(feature_names or [])

    def transform(self, payload: Mapping[str, float] | Sequence[Mapping[str, float]]) -> pd.DataFrame:
        rows = [payload] if isinstance(payload, Mapping) else list(payload)
        frame = pd.DataFrame(rows)
        if self.feature_names:
            frame = frame.reindex(columns=self.feature_names, fill_value=0)
        return frame.fillna(0).astype(float)


__all__ = ["FEATURE_NAMES", "FeatureAligner", "build_feature_vector"]
