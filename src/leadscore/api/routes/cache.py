"""Cache management endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from leadscore.api.deps import get_service
from leadscore.scoring import ScoringService

router = APIRouter(prefix="/cache", tags=["cache"])


class CacheCleared(BaseModel):
    removed: int


class CacheSettings(BaseModel):
    ttl_ms: int = Field(gt=0)


@router.delete("/leads/{lead_id}", response_model=CacheCleared)
def clear_lead(lead_id: int, service: Annotated[ScoringService, Depends(get_service)]) -> CacheCleared:
    return CacheCleared(removed=service.clear_lead_cache(lead_id))


@router.delete("/models/{model_id}", response_model=CacheCleared)
def clear_model(model_id: str, service: Annotated[ScoringService, Depends(get_service)]) -> CacheCleared:
    return CacheCleared(removed=service.clear_model_cache(model_id))


@router.delete("", response_model=CacheCleared)
def clear_all(service: Annotated[ScoringService, Depends(get_service)]) -> CacheCleared:
    return CacheCleared(removed=service.clear_all_caches())


@router.put("/settings", response_model=CacheSettings)
def update_settings(
    settings: CacheSettings,
    service: Annotated[ScoringService, Depends(get_service)],
) -> CacheSettings:
    service.update_cache_settings(settings.ttl_ms)
    return CacheSettings(ttl_ms=service.cache.ttl_ms)


__all__ = ["router"]
