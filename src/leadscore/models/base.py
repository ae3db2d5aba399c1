"""Common gateway interface shared by the concrete model backends."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Mapping

from leadscore.core.protocols import GatewayPrediction
from leadscore.exceptions import InvalidFeatures


def confidence_from_probability(probability: float) -> float:
    """Distance from the decision boundary mapped onto a 0-1 scale."""

    return min(abs(probability - 0.5) * 2, 1.0)


class BaseGateway(ABC):
    """Unified interface across model backends."""

    def __init__(self, model_id: str, model_version: str = "unknown") -> None:
        if not model_id:
            raise ValueError("model_id must be a non-empty string")
        self._model_id = model_id
        self._model_version = model_version

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def model_version(self) -> str:
        return self._model_version

    @abstractmethod
    def _predict_proba(
        self, features: Mapping[str, float]
    ) -> tuple[float, dict[str, float] | None]:  # pragma: no cover - interface
        raise NotImplementedError

    def predict(self, features: Mapping[str, float]) -> GatewayPrediction:
        if not features:
            raise InvalidFeatures("Feature payload is empty")
        for name, value in features.items():
            if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
                raise InvalidFeatures(f"Feature '{name}' must be a finite number, got {value!r}")

        probability, contributions = self._predict_proba(features)
        return GatewayPrediction(
            raw_score=probability,
            confidence=confidence_from_probability(probability),
            model_id=self.model_id,
            model_version=self.model_version,
            contributions=contributions,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model_id={self.model_id!r}, model_version={self.model_version!r})"


__all__ = ["BaseGateway", "confidence_from_probability"]
