"""Gateway loading models from an MLflow registry or direct URI."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

import mlflow
import mlflow.pyfunc
import numpy as np
import pandas as pd

from leadscore.exceptions import ModelUnavailable

from .base import BaseGateway

logger = logging.getLogger(__name__)


class MLflowGateway(BaseGateway):
    """Lazily load an MLflow pyfunc model and score single leads with it."""

    def __init__(
        self,
        model_uri: str,
        *,
        model_id: str,
        model_version: str = "unknown",
        tracking_uri: str | None = None,
    ) -> None:
        super().__init__(model_id=model_id, model_version=model_version)
        self.model_uri = model_uri
        self.tracking_uri = tracking_uri
        self._model: Any | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_registry(cls, name: str, stage: str, *, model_id: str | None = None) -> MLflowGateway:
        return cls(f"models:/{name}/{stage}", model_id=model_id or name, model_version=stage)

    def _ensure_model(self) -> Any:
        with self._lock:
            if self._model is None:
                if self.tracking_uri:
                    mlflow.set_tracking_uri(self.tracking_uri)  # type: ignore[attr-defined]
                logger.info("Loading model %s from %s", self.model_id, self.model_uri)
                try:
                    self._model = mlflow.pyfunc.load_model(self.model_uri)
                except Exception as exc:  # noqa: BLE001
                    raise ModelUnavailable(f"Unable to load model {self.model_id}: {exc}") from exc
            return self._model

    def _predict_proba(self, features: Mapping[str, float]) -> tuple[float, dict[str, float] | None]:
        model = self._ensure_model()
        try:
            predictions = model.predict(pd.DataFrame([dict(features)]))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model %s failed during prediction", self.model_id)
            raise ModelUnavailable(f"Model {self.model_id} failed: {exc}") from exc
        return self._normalise(predictions), None

    def _normalise(self, predictions: Any) -> float:
        if isinstance(predictions, pd.DataFrame):
            return float(predictions.iloc[0, -1])
        if isinstance(predictions, pd.Series):
            return float(predictions.iloc[0])
        if isinstance(predictions, (np.ndarray, list)):
            array = np.asarray(predictions, dtype=float)
            return float(array[0, -1] if array.ndim > 1 else array[0])
        raise ModelUnavailable(f"Unsupported prediction output type: {type(predictions)!r}")


__all__ = ["MLflowGateway"]
