"""Health, statistics and model listing endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from leadscore.api.deps import get_service
from leadscore.schemas import HealthStatus, ScoringStatistics
from leadscore.scoring import ScoringService

router = APIRouter()


class ModelList(BaseModel):
    models: list[str]
    default: str | None


@router.get("/health", response_model=HealthStatus, tags=["health"])
def health(service: Annotated[ScoringService, Depends(get_service)]) -> HealthStatus:
    return service.get_health_status()


@router.get("/statistics", response_model=ScoringStatistics, tags=["health"])
def statistics(service: Annotated[ScoringService, Depends(get_service)]) -> ScoringStatistics:
    return service.get_scoring_statistics()


@router.get("/models", response_model=ModelList, tags=["health"])
def models(service: Annotated[ScoringService, Depends(get_service)]) -> ModelList:
    return ModelList(models=service.list_models(), default=service.default_model_id)


__all__ = ["router"]
