"""Sample fixtures for unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pandas as pd

from leadscore.schemas import LeadProfile

REFERENCE = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_lead(lead_id: int, **overrides) -> LeadProfile:
    """Lead whose ``lead_score`` is ``40 + lead_id % 50`` unless overridden."""

    payload = {
        "id": lead_id,
        "name": f"Lead {lead_id}",
        "email": f"lead{lead_id}@example.com",
        "phone": "555-0100",
        "lead_score": float(40 + lead_id % 50),
        "engagement_level": "high",
        "property_type": "condo",
        "budget_range": "$400k",
        "timeline": "1-3 months",
        "location": "Austin, TX",
        "source": "referral",
        "created_at": REFERENCE - timedelta(days=30),
        "last_activity": REFERENCE - timedelta(days=2),
        "total_interactions": 12,
        "conversion_events": 1,
        "behavioral_score": 0.6,
    }
    payload.update(overrides)
    return LeadProfile(**payload)


def make_leads(lead_ids) -> list[LeadProfile]:
    return [make_lead(lead_id) for lead_id in lead_ids]


def make_lead_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "lead_id": [1, 2, 3],
            "name": ["Ada", "Grace", "Linus"],
            "email": ["ada@example.com", "grace@example.com", "linus@example.com"],
            "phone": ["555-0101", None, "555-0103"],
            "lead_score": [82.0, 45.5, 67.0],
            "engagement_level": ["high", "low", "medium"],
            "source": ["referral", "cold_call", "website"],
            "created_at": ["2024-01-01T00:00:00Z", "2024-02-01T00:00:00Z", "2024-03-01T00:00:00Z"],
            "last_activity": ["2024-05-20T00:00:00Z", "2024-04-01T00:00:00Z", "2024-05-30T00:00:00Z"],
            "total_interactions": [20, 3, 9],
            "conversion_events": [2, 0, 1],
            "behavioral_score": [0.9, None, 0.5],
        }
    )
