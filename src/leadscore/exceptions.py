"""Error taxonomy shared by the scoring service and its collaborators."""

from __future__ import annotations


class ScoringError(Exception):
    """Base exception for all scoring errors."""


class LeadNotFound(ScoringError):
    """Raised when a lead identifier is invalid or unknown. Never retried."""

    def __init__(self, lead_id: object):
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class ModelUnavailable(ScoringError):
    """Transient model runtime failure; eligible for a bounded retry."""


class ModelNotFound(ScoringError):
    """Raised when a model identifier is not registered."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Model {model_id} is not registered")


class InvalidFeatures(ScoringError):
    """Raised when a gateway rejects the feature payload."""


class RateLimited(ScoringError):
    """Raised when admission to the model runtime is denied."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Rate limit exceeded for {key}")


class InvalidBatchInput(ScoringError):
    """Raised for malformed batch requests before any lead is scored."""


__all__ = [
    "ScoringError",
    "LeadNotFound",
    "ModelUnavailable",
    "ModelNotFound",
    "InvalidFeatures",
    "RateLimited",
    "InvalidBatchInput",
]
