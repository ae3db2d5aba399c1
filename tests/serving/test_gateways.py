from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import joblib
import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression

import leadscore.models.mlflow_gateway as mlflow_module
from leadscore.data import make_sample_leads
from leadscore.exceptions import InvalidFeatures, ModelUnavailable
from leadscore.features import FEATURE_NAMES, build_feature_vector
from leadscore.models import MLflowGateway, SklearnGateway
from tests.fixtures.sample_data import REFERENCE


@pytest.fixture(scope="module")
def training_frame() -> tuple[pd.DataFrame, pd.Series]:
    leads = make_sample_leads(60, start_id=1, reference=REFERENCE)
    frame = pd.DataFrame([build_feature_vector(lead, reference=REFERENCE) for lead in leads], columns=FEATURE_NAMES)
    labels = (frame["lead_score"] > frame["lead_score"].median()).astype(int)
    return frame, labels


@pytest.fixture(scope="module")
def logistic(training_frame) -> LogisticRegression:
    frame, labels = training_frame
    return LogisticRegression(max_iter=1000).fit(frame, labels)


def test_sklearn_gateway_matches_predict_proba(logistic, training_frame) -> None:
    frame, _ = training_frame
    gateway = SklearnGateway(logistic, model_id="lr", feature_names=FEATURE_NAMES)
    features = frame.iloc[0].to_dict()

    prediction = gateway.predict(features)

    expected = logistic.predict_proba(frame.iloc[[0]])[0, 1]
    assert prediction.raw_score == pytest.approx(expected)
    assert 0.0 <= prediction.confidence <= 1.0
    assert set(prediction.contributions) == set(FEATURE_NAMES)


def test_sklearn_gateway_uses_fitted_feature_names(logistic) -> None:
    gateway = SklearnGateway(logistic, model_id="lr")

    assert gateway.aligner.feature_names == FEATURE_NAMES
    assert 0.0 <= gateway.predict({"lead_score": 0.9}).raw_score <= 1.0


def test_tree_model_contributions_use_importances(training_frame) -> None:
    frame, labels = training_frame
    forest = RandomForestClassifier(n_estimators=10, random_state=0).fit(frame, labels)
    gateway = SklearnGateway(forest, model_id="rf")

    prediction = gateway.predict(frame.iloc[0].to_dict())

    assert set(prediction.contributions) == set(FEATURE_NAMES)


def test_from_artifact_dict(tmp_path: Path, logistic) -> None:
    artifact = tmp_path / "lead.joblib"
    joblib.dump({"model": logistic, "feature_names": FEATURE_NAMES, "version": "7"}, artifact)

    gateway = SklearnGateway.from_artifact(artifact, model_id="lead")

    assert gateway.model_version == "7"
    assert gateway.aligner.feature_names == FEATURE_NAMES


def test_from_artifact_bare_estimator(tmp_path: Path, logistic) -> None:
    artifact = tmp_path / "bare.joblib"
    joblib.dump(logistic, artifact)

    gateway = SklearnGateway.from_artifact(artifact, model_id="bare", model_version="2")

    assert gateway.model_version == "2"


def test_from_artifact_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        SklearnGateway.from_artifact(tmp_path / "missing.joblib", model_id="m")


class BrokenEstimator:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def predict_proba(self, features):
        raise self.error


def test_estimator_runtime_error_is_model_unavailable() -> None:
    gateway = SklearnGateway(BrokenEstimator(RuntimeError("boom")), model_id="broken")

    with pytest.raises(ModelUnavailable, match="boom"):
        gateway.predict({"a": 1.0})


def test_estimator_value_error_is_invalid_features() -> None:
    gateway = SklearnGateway(BrokenEstimator(ValueError("bad shape")), model_id="broken")

    with pytest.raises(InvalidFeatures):
        gateway.predict({"a": 1.0})


class DummyPyfunc:
    def __init__(self, output) -> None:
        self.output = output

    def predict(self, features: pd.DataFrame):
        return self.output


def _patch_mlflow(monkeypatch: pytest.MonkeyPatch, model=None, error: Exception | None = None) -> list[str]:
    loads: list[str] = []

    def load_model(uri: str):
        loads.append(uri)
        if error is not None:
            raise error
        return model

    dummy_mlflow = SimpleNamespace(
        set_tracking_uri=lambda uri: None,
        pyfunc=SimpleNamespace(load_model=load_model),
    )
    monkeypatch.setattr(mlflow_module, "mlflow", dummy_mlflow)
    return loads


def test_mlflow_gateway_loads_once(monkeypatch: pytest.MonkeyPatch) -> None:
    loads = _patch_mlflow(monkeypatch, DummyPyfunc(np.array([0.7])))
    gateway = MLflowGateway("models:/lead/Production", model_id="lead", tracking_uri="file:./mlruns")

    first = gateway.predict({"lead_score": 0.5})
    second = gateway.predict({"lead_score": 0.6})

    assert first.raw_score == pytest.approx(0.7)
    assert second.confidence == pytest.approx(0.4)
    assert loads == ["models:/lead/Production"]


@pytest.mark.parametrize(
    "output",
    [
        pd.DataFrame({"p0": [0.2], "p1": [0.8]}),
        pd.Series([0.8]),
        np.array([[0.2, 0.8]]),
        [0.8],
    ],
)
def test_mlflow_gateway_normalises_outputs(monkeypatch: pytest.MonkeyPatch, output) -> None:
    _patch_mlflow(monkeypatch, DummyPyfunc(output))
    gateway = MLflowGateway("runs:/abc/model", model_id="lead")

    assert gateway.predict({"lead_score": 0.5}).raw_score == pytest.approx(0.8)


def test_mlflow_gateway_load_failure_is_model_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_mlflow(monkeypatch, error=OSError("registry offline"))
    gateway = MLflowGateway.from_registry("lead", "Production")

    with pytest.raises(ModelUnavailable, match="registry offline"):
        gateway.predict({"lead_score": 0.5})
    assert gateway.model_id == "lead"
