"""Factory for building gateways from configuration."""

from __future__ import annotations

from leadscore.config.settings import ModelEntryConfig, Settings
from leadscore.core.protocols import ModelGateway

from .mlflow_gateway import MLflowGateway
from .registry import GatewayRegistry
from .sklearn_gateway import SklearnGateway


def build_gateway(entry: ModelEntryConfig, settings: Settings) -> ModelGateway:
    """Return a gateway instance matching the requested model type."""

    if entry.type == "sklearn_artifact":
        assert entry.path is not None
        return SklearnGateway.from_artifact(
            settings.resolve_path(entry.path),
            model_id=entry.model_id,
            model_version=entry.version,
        )

    if entry.type == "mlflow":
        assert entry.uri is not None
        return MLflowGateway(entry.uri, model_id=entry.model_id, model_version=entry.version or "unknown")

    raise NotImplementedError(f"Model type '{entry.type}' is not yet supported.")


def build_registry(settings: Settings) -> GatewayRegistry:
    registry = GatewayRegistry()
    for entry in settings.models:
        registry.register(build_gateway(entry, settings), default=entry.default)
    return registry


__all__ = ["build_gateway", "build_registry"]
