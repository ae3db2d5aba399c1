"""Model gateway exports."""

from .base import BaseGateway, confidence_from_probability
from .factory import build_gateway, build_registry
from .mlflow_gateway import MLflowGateway
from .registry import GatewayRegistry
from .sklearn_gateway import SklearnGateway

__all__ = [
    "BaseGateway",
    "GatewayRegistry",
    "MLflowGateway",
    "SklearnGateway",
    "build_gateway",
    "build_registry",
    "confidence_from_probability",
]
