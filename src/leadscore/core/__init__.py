"""Core abstractions shared across the package."""

from .protocols import GatewayPrediction, LeadCatalog, LeadDataProvider, ModelGateway

__all__ = ["GatewayPrediction", "LeadCatalog", "LeadDataProvider", "ModelGateway"]
