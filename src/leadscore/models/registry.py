"""In-process registry of active model gateways."""

from __future__ import annotations

import logging
import threading

from leadscore.core.protocols import ModelGateway
from leadscore.exceptions import ModelNotFound, ModelUnavailable

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """Model ID -> gateway mapping with a default (active) model.

    The first registered gateway becomes the default unless another one is
    registered with ``default=True``.
    """

    def __init__(self) -> None:
        self._gateways: dict[str, ModelGateway] = {}
        self._default_id: str | None = None
        self._lock = threading.Lock()

    def register(self, gateway: ModelGateway, *, default: bool = False) -> bool:
        """Add or replace a gateway. Returns True when an existing one was replaced."""

        with self._lock:
            replaced = gateway.model_id in self._gateways
            self._gateways[gateway.model_id] = gateway
            if default or self._default_id is None:
                self._default_id = gateway.model_id
        logger.info(
            "Registered model %s (version %s)%s",
            gateway.model_id,
            gateway.model_version,
            " as default" if self._default_id == gateway.model_id else "",
        )
        return replaced

    def unregister(self, model_id: str) -> None:
        with self._lock:
            if model_id not in self._gateways:
                raise ModelNotFound(model_id)
            del self._gateways[model_id]
            if self._default_id == model_id:
                self._default_id = next(iter(self._gateways), None)

    def set_default(self, model_id: str) -> None:
        with self._lock:
            if model_id not in self._gateways:
                raise ModelNotFound(model_id)
            self._default_id = model_id

    @property
    def default_model_id(self) -> str | None:
        return self._default_id

    def get(self, model_id: str) -> ModelGateway:
        with self._lock:
            gateway = self._gateways.get(model_id)
        if gateway is None:
            raise ModelNotFound(model_id)
        return gateway

    def resolve(self, model_id: str | None = None) -> ModelGateway:
        """Return the requested gateway, or the default one when ``model_id`` is None."""

        if model_id is not None:
            return self.get(model_id)
        with self._lock:
            default_id = self._default_id
            gateway = self._gateways.get(default_id) if default_id else None
        if gateway is None:
            raise ModelUnavailable("No active model available")
        return gateway

    def list(self) -> list[str]:
        with self._lock:
            return sorted(self._gateways)

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._gateways

    def __len__(self) -> int:
        with self._lock:
            return len(self._gateways)


__all__ = ["GatewayRegistry"]
