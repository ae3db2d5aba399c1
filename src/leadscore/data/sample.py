"""Deterministic sample leads for local runs and tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np

from leadscore.schemas import LeadProfile

SOURCES = ["website", "referral", "zillow", "social", "open_house", "cold_call"]
PROPERTY_TYPES = ["single_family", "condo", "townhouse", "multi_family"]
TIMELINES = ["immediate", "1-3 months", "3-6 months", "6+ months"]
ENGAGEMENT = ["low", "medium", "high"]


def make_sample_leads(
    count: int = 50,
    *,
    start_id: int = 101,
    seed: int = 42,
    reference: datetime | None = None,
) -> list[LeadProfile]:
    rng = np.random.default_rng(seed)
    now = reference or datetime.now(timezone.utc)

    leads = []
    for offset in range(count):
        lead_id = start_id + offset
        age_days = int(rng.integers(1, 180))
        idle_days = int(rng.integers(0, min(age_days, 60) + 1))
        leads.append(
            LeadProfile(
                id=lead_id,
                name=f"Lead {lead_id}",
                email=f"lead{lead_id}@example.com",
                phone=f"555-01{offset % 100:02d}" if rng.random() > 0.3 else None,
                lead_score=float(round(rng.uniform(0, 100), 1)),
                engagement_level=ENGAGEMENT[int(rng.integers(0, len(ENGAGEMENT)))],
                property_type=PROPERTY_TYPES[int(rng.integers(0, len(PROPERTY_TYPES)))],
                budget_range=f"${int(rng.integers(2, 9)) * 100}k",
                timeline=TIMELINES[int(rng.integers(0, len(TIMELINES)))],
                location="Austin, TX",
                source=SOURCES[int(rng.integers(0, len(SOURCES)))],
                created_at=now - timedelta(days=age_days),
                last_activity=now - timedelta(days=idle_days),
                total_interactions=int(rng.integers(0, 40)),
                conversion_events=int(rng.integers(0, 5)),
                behavioral_score=float(round(rng.uniform(0, 1), 3)),
            )
        )
    return leads


__all__ = ["make_sample_leads"]
