"""Gateway backed by scikit-learn estimators saved with joblib."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import pandas as pd

from leadscore.exceptions import InvalidFeatures, ModelUnavailable
from leadscore.features import FeatureAligner

from .base import BaseGateway

logger = logging.getLogger(__name__)


class SklearnGateway(BaseGateway):
    """Score leads with a fitted classifier exposing ``predict_proba``."""

    def __init__(
        self,
        estimator: Any,
        *,
        model_id: str,
        model_version: str = "1",
        feature_names: Sequence[str] | None = None,
    ) -> None:
        super().__init__(model_id=model_id, model_version=model_version)
        self.estimator = estimator
        names = feature_names if feature_names is not None else getattr(estimator, "feature_names_in_", None)
        self.aligner = FeatureAligner(list(names) if names is not None else None)

    @classmethod
    def from_artifact(cls, path: Path | str, *, model_id: str, model_version: str | None = None) -> SklearnGateway:
        """Load a joblib artifact: either a bare estimator or ``{"model", "feature_names", "version"}``."""

        artifact_path = Path(path)
        if not artifact_path.exists():
            raise FileNotFoundError(f"Model artifact not found at {artifact_path}")

        logger.info("Loading model %s from %s", model_id, artifact_path)
        artifact = joblib.load(artifact_path)
        if isinstance(artifact, dict):
            return cls(
                artifact["model"],
                model_id=model_id,
                model_version=model_version or str(artifact.get("version", "1")),
                feature_names=artifact.get("feature_names"),
            )
        return cls(artifact, model_id=model_id, model_version=model_version or "1")

    def _predict_proba(self, features: Mapping[str, float]) -> tuple[float, dict[str, float] | None]:
        frame = self.aligner.transform(features)

        try:
            if hasattr(self.estimator, "predict_proba"):
                proba = self.estimator.predict_proba(frame)
                if isinstance(proba, pd.DataFrame):
                    probability = float(proba.iloc[0, -1])
                else:
                    probability = float(np.asarray(proba)[0, -1])
            else:
                probability = float(np.asarray(self.estimator.predict(frame)).ravel()[0])
        except (ValueError, TypeError) as exc:
            raise InvalidFeatures(f"Model {self.model_id} rejected features: {exc}") from exc
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model %s failed during prediction", self.model_id)
            raise ModelUnavailable(f"Model {self.model_id} failed: {exc}") from exc

        return probability, self._contributions(frame)

    def _contributions(self, frame: pd.DataFrame) -> dict[str, float] | None:
        values = frame.iloc[0].to_numpy(dtype=float)
        if hasattr(self.estimator, "coef_"):
            weights = np.asarray(self.estimator.coef_, dtype=float).ravel()
        elif hasattr(self.estimator, "feature_importances_"):
            weights = np.asarray(self.estimator.feature_importances_, dtype=float).ravel()
        else:
            return None

        if weights.shape[0] != values.shape[0]:
            return None
        return {str(column): float(weight * value) for column, weight, value in zip(frame.columns, weights, values)}


__all__ = ["SklearnGateway"]
