"""FastAPI application factory wiring routes, dependencies and middleware."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import REGISTRY, generate_latest

from leadscore.config import Settings, load_settings
from leadscore.exceptions import (
    InvalidBatchInput,
    InvalidFeatures,
    LeadNotFound,
    ModelNotFound,
    ModelUnavailable,
    RateLimited,
    ScoringError,
)
from leadscore.scoring import ScoringService

from .deps import get_service
from .middleware import install_default_middleware
from .routes import cache, health, scoring

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

ERROR_STATUS: dict[type[ScoringError], int] = {
    LeadNotFound: 404,
    ModelNotFound: 404,
    RateLimited: 429,
    InvalidBatchInput: 400,
    InvalidFeatures: 400,
    ModelUnavailable: 503,
}


def get_settings(config_path: Path | str | None = None) -> Settings:
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        logger.warning("Config file %s not found; using defaults", path)
        return Settings()
    return load_settings(path)


@lru_cache(maxsize=1)
def _settings_cached() -> Settings:
    return get_settings()


def _status_for(exc: ScoringError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


def create_app(settings: Settings | None = None, *, service: ScoringService | None = None) -> FastAPI:
    resolved_settings = settings or (Settings() if service is not None else _settings_cached())
    owns_service = service is None
    resolved_service = service or ScoringService.from_settings(resolved_settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_service:
            resolved_service.close()

    app = FastAPI(title="leadscore", version=resolved_settings.project.version, lifespan=lifespan)
    app.state.service = resolved_service
    install_default_middleware(app)

    app.include_router(health.router, prefix="/api")
    app.include_router(scoring.router, prefix="/api")
    app.include_router(cache.router, prefix="/api")

    app.dependency_overrides[get_service] = lambda: resolved_service

    @app.exception_handler(ScoringError)
    async def scoring_error_handler(request: Request, exc: ScoringError) -> JSONResponse:
        status_code = _status_for(exc)
        headers = None
        if isinstance(exc, RateLimited):
            retry_after = resolved_service.limiter.seconds_until_reset()
            headers = {"Retry-After": str(max(int(retry_after) + 1, 1))}
        if status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
            headers=headers,
        )

    if resolved_settings.serving.enable_metrics:

        @app.get("/metrics", response_class=PlainTextResponse, include_in_schema=False)
        def metrics() -> PlainTextResponse:
            return PlainTextResponse(generate_latest(REGISTRY))

    return app


__all__ = ["create_app", "get_settings"]
