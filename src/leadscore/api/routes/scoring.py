"""Lead scoring endpoints backed by ScoringService."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, StrictInt

from leadscore.api.deps import get_service
from leadscore.schemas import BatchScoringResult, LeadInsights, MLLeadScore, Priority
from leadscore.scoring import ScoringService

router = APIRouter(tags=["scoring"])


class ScoreRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str | None = None
    use_cache: bool = True


class BatchScoreRequest(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    lead_ids: list[StrictInt]
    model_id: str | None = None
    priority: Priority = "medium"
    use_cache: bool = True
    timeout_s: float | None = Field(default=None, gt=0)


@router.post("/leads/batch-score", response_model=BatchScoringResult)
def score_batch(
    request: BatchScoreRequest,
    service: Annotated[ScoringService, Depends(get_service)],
) -> BatchScoringResult:
    return service.score_leads_batch(
        request.lead_ids,
        request.model_id,
        request.priority,
        use_cache=request.use_cache,
        timeout_s=request.timeout_s,
    )


@router.get("/batches/{request_id}", response_model=BatchScoringResult)
def batch_result(
    request_id: str,
    service: Annotated[ScoringService, Depends(get_service)],
) -> BatchScoringResult:
    result = service.get_batch_result(request_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Batch {request_id} not found")
    return result


@router.post("/leads/{lead_id}/score", response_model=MLLeadScore)
def score_lead(
    lead_id: int,
    service: Annotated[ScoringService, Depends(get_service)],
    request: ScoreRequest | None = None,
) -> MLLeadScore:
    request = request or ScoreRequest()
    return service.score_lead(lead_id, request.model_id, use_cache=request.use_cache)


@router.get("/leads/{lead_id}/insights", response_model=LeadInsights)
def lead_insights(
    lead_id: int,
    service: Annotated[ScoringService, Depends(get_service)],
    model_id: Annotated[str | None, Query()] = None,
) -> LeadInsights:
    return service.get_lead_insights(lead_id, model_id)


__all__ = ["router", "ScoreRequest", "BatchScoreRequest"]
