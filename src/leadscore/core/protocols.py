"""Protocols describing the collaborators the scoring service consumes."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - assists static analysis
    from leadscore.schemas import LeadProfile


@dataclass(frozen=True)
class GatewayPrediction:
    """Raw output of one model invocation."""

    raw_score: float
    confidence: float
    model_id: str
    model_version: str = "unknown"
    contributions: dict[str, float] | None = None


@runtime_checkable
class ModelGateway(Protocol):
    """Contract for a single trained model version.

    ``predict`` raises ``ModelUnavailable`` for runtime failures and
    ``InvalidFeatures`` when the payload cannot be scored.
    """

    @property
    def model_id(self) -> str: ...

    @property
    def model_version(self) -> str: ...

    def predict(self, features: Mapping[str, float]) -> GatewayPrediction: ...


@runtime_checkable
class LeadDataProvider(Protocol):
    """Contract for fetching lead profiles; raises ``LeadNotFound``."""

    def fetch_lead_profile(self, lead_id: int) -> LeadProfile: ...


@runtime_checkable
class LeadCatalog(Protocol):
    """Provider that can enumerate its profiles, enabling similar-lead lookups."""

    def profiles(self) -> list[LeadProfile]: ...


__all__ = ["GatewayPrediction", "ModelGateway", "LeadDataProvider", "LeadCatalog"]
