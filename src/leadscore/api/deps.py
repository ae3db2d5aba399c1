"""Request-scoped dependencies."""

from __future__ import annotations

from leadscore.scoring import ScoringService


def get_service() -> ScoringService:  # pragma: no cover - injected at runtime
    raise RuntimeError("Scoring service dependency not wired")


__all__ = ["get_service"]
