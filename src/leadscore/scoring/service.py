"""Scoring facade composing cache, limiter, gateways, batches and telemetry."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from leadscore.config.settings import BatchConfig, RateLimitConfig, RetryConfig, Settings
from leadscore.core.protocols import GatewayPrediction, LeadCatalog, LeadDataProvider, ModelGateway
from leadscore.data import InMemoryLeadStore, make_sample_leads
from leadscore.exceptions import (
    InvalidFeatures,
    LeadNotFound,
    ModelUnavailable,
    RateLimited,
    ScoringError,
)
from leadscore.features import build_feature_vector
from leadscore.models import GatewayRegistry, build_registry
from leadscore.schemas import (
    BatchScoringResult,
    HealthStatus,
    LeadInsights,
    LeadProfile,
    MLLeadScore,
    Priority,
    ScoringStatistics,
    utcnow,
)

from .batch import BatchOrchestrator
from .cache import ScoreCache
from .insights import derive_insights, explain_prediction, find_similar_profiles, summarize_score
from .rate_limiter import RateLimiter
from .stats import Outcome, StatisticsCollector

logger = logging.getLogger(__name__)


def _validate_lead_id(lead_id: Any) -> int:
    if isinstance(lead_id, bool) or not isinstance(lead_id, int) or lead_id <= 0:
        raise LeadNotFound(lead_id)
    return lead_id


class ScoringService:
    """Public entry point for real-time lead scoring.

    Owns the score cache, rate limiter, statistics collector and batch
    orchestrator. Construct one per process via :meth:`from_settings` and
    inject it into callers.
    """

    def __init__(
        self,
        registry: GatewayRegistry,
        leads: LeadDataProvider,
        *,
        cache: ScoreCache | None = None,
        limiter: RateLimiter | None = None,
        statistics: StatisticsCollector | None = None,
        retry: RetryConfig | None = None,
        rate_limit: RateLimitConfig | None = None,
        batch: BatchConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        rate_limit = rate_limit or RateLimitConfig()
        batch = batch or BatchConfig()

        self.registry = registry
        self.leads = leads
        self.cache = cache or ScoreCache()
        self.limiter = limiter or RateLimiter(rate_limit.max_calls, rate_limit.window_ms)
        self.statistics = statistics or StatisticsCollector()
        self.retry = retry or RetryConfig()
        self.queue_timeout_s = rate_limit.queue_timeout_s
        self._sleep = sleep
        self.batches = BatchOrchestrator(
            self._score_for_batch,
            resolve_model=self._resolve_model_id,
            on_cancelled=self._record_cancelled,
            on_submit=self.statistics.record_batch,
            max_batch_size=batch.max_batch_size,
            max_workers=batch.max_workers,
            timeout_s=batch.timeout_s,
            max_queued=batch.max_queued,
            queue_waits_for_admission=rate_limit.queue_low_priority,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        leads: LeadDataProvider | None = None,
        registry: GatewayRegistry | None = None,
    ) -> ScoringService:
        if leads is None:
            if settings.data.leads_path:
                leads = InMemoryLeadStore.from_csv(
                    settings.resolve_path(settings.data.leads_path),
                    id_column=settings.data.id_column,
                )
            else:
                logger.warning("No leads_path configured; serving generated sample leads")
                leads = InMemoryLeadStore(make_sample_leads())

        cache = ScoreCache(
            settings.cache.ttl_ms,
            max_entries=settings.cache.max_entries,
            shards=settings.cache.shards,
            sweep_interval_s=settings.cache.sweep_interval_s,
        )
        return cls(
            registry or build_registry(settings),
            leads,
            cache=cache,
            statistics=StatisticsCollector(settings.statistics.window_s, health=settings.health),
            retry=settings.retry,
            rate_limit=settings.rate_limit,
            batch=settings.batch,
        )

    # Scoring

    def score_lead(self, lead_id: int, model_id: str | None = None, use_cache: bool = True) -> MLLeadScore:
        """Score one lead. ``use_cache=False`` skips the lookup but still refreshes the entry."""

        return self._score(lead_id, model_id, use_cache=use_cache)

    def score_lead_with_data(
        self,
        profile: LeadProfile,
        model_id: str | None = None,
        use_cache: bool = True,
    ) -> MLLeadScore:
        return self._score(profile.id, model_id, use_cache=use_cache, profile=profile)

    def score_leads_batch(
        self,
        lead_ids: Sequence[int],
        model_id: str | None = None,
        priority: Priority = "medium",
        *,
        use_cache: bool = True,
        timeout_s: float | None = None,
    ) -> BatchScoringResult:
        return self.batches.score_batch(lead_ids, model_id, priority, use_cache=use_cache, timeout_s=timeout_s)

    def get_batch_result(self, request_id: str) -> BatchScoringResult | None:
        return self.batches.get_result(request_id)

    def wait_for_batch(self, request_id: str, timeout: float | None = None) -> BatchScoringResult | None:
        return self.batches.wait(request_id, timeout)

    def get_lead_insights(self, lead_id: int, model_id: str | None = None) -> LeadInsights:
        score = self.score_lead(lead_id, model_id)
        try:
            profile = self.leads.fetch_lead_profile(lead_id)
        except LeadNotFound:
            profile = None

        similar = []
        if profile is not None and isinstance(self.leads, LeadCatalog):
            similar = find_similar_profiles(profile, self.leads.profiles())
        return derive_insights(score, profile, similar_profiles=similar)

    def _score_for_batch(
        self,
        lead_id: int,
        model_id: str | None,
        *,
        use_cache: bool,
        wait_for_admission: bool,
        settle: Callable[[], bool],
    ) -> MLLeadScore:
        return self._score(
            lead_id,
            model_id,
            use_cache=use_cache,
            wait_for_admission=wait_for_admission,
            settle=settle,
        )

    def _score(
        self,
        lead_id: int,
        model_id: str | None,
        *,
        use_cache: bool,
        wait_for_admission: bool = False,
        profile: LeadProfile | None = None,
        settle: Callable[[], bool] | None = None,
    ) -> MLLeadScore:
        start = time.perf_counter()
        outcome = Outcome.ERROR
        cache_hit: bool | None = None
        resolved_model = model_id

        with self.statistics.track_active():
            try:
                _validate_lead_id(lead_id)
                gateway = self.registry.resolve(model_id)
                resolved_model = gateway.model_id

                if use_cache:
                    cached = self.cache.get(lead_id, gateway.model_id)
                    cache_hit = cached is not None
                    if cached is not None:
                        outcome = Outcome.SUCCESS
                        return cached

                if profile is None:
                    profile = self.leads.fetch_lead_profile(lead_id)
                score = self._invoke(gateway, profile, wait_for_admission=wait_for_admission)
                if settle is not None and not settle():
                    raise ScoringError(f"Lead {lead_id} finished after its batch timed out")
                self.cache.put(lead_id, gateway.model_id, score)
                outcome = Outcome.SUCCESS
                return score
            except RateLimited:
                outcome = Outcome.THROTTLED
                logger.warning("Throttled scoring of lead %s on model %s", lead_id, resolved_model)
                raise
            finally:
                if settle is not None and not settle():
                    # The batch already reported this lead as timed out
                    outcome = Outcome.ERROR
                    logger.warning("Lead %s finished after its batch timed out", lead_id)
                latency_ms = (time.perf_counter() - start) * 1000
                self.statistics.record_outcome(outcome, latency_ms, cache_hit=cache_hit, model_id=resolved_model)

    def _invoke(self, gateway: ModelGateway, profile: LeadProfile, *, wait_for_admission: bool) -> MLLeadScore:
        features = build_feature_vector(profile)
        attempts = self.retry.max_attempts

        for attempt in range(1, attempts + 1):
            self._admit(gateway.model_id, wait_for_admission)
            try:
                prediction = self._call_gateway(gateway, features)
            except ModelUnavailable as exc:
                self.statistics.record_gateway_call(False, gateway.model_id)
                if attempt == attempts:
                    logger.error("Model %s unavailable after %d attempts: %s", gateway.model_id, attempts, exc)
                    raise
                logger.warning("Model %s unavailable (attempt %d/%d): %s", gateway.model_id, attempt, attempts, exc)
                self._sleep(self.retry.backoff_ms * attempt / 1000.0)
                continue
            except InvalidFeatures:
                self.statistics.record_gateway_call(False, gateway.model_id)
                raise

            self.statistics.record_gateway_call(True, gateway.model_id)
            return self._build_score(profile.id, gateway, prediction, features)

        raise ModelUnavailable(f"Model {gateway.model_id} unavailable")  # pragma: no cover - loop always returns

    def _admit(self, model_id: str, wait: bool) -> None:
        if wait:
            admitted = self.limiter.acquire(model_id, timeout=self.queue_timeout_s)
        else:
            admitted = self.limiter.try_acquire(model_id)
        if not admitted:
            raise RateLimited(model_id)

    def _call_gateway(self, gateway: ModelGateway, features: Mapping[str, float]) -> GatewayPrediction:
        try:
            prediction = gateway.predict(features)
        except ScoringError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model %s raised an unexpected error", gateway.model_id)
            raise ModelUnavailable(f"Model {gateway.model_id} failed: {exc}") from exc

        if not math.isfinite(prediction.raw_score) or not math.isfinite(prediction.confidence):
            raise ModelUnavailable(f"Model {gateway.model_id} returned a non-finite score")
        return prediction

    def _build_score(
        self,
        lead_id: int,
        gateway: ModelGateway,
        prediction: GatewayPrediction,
        features: Mapping[str, float],
    ) -> MLLeadScore:
        # Tier on the rounded score so the score, prediction and insights agree
        score = round(min(max(float(prediction.raw_score), 0.0), 1.0), 2)
        confidence = min(max(float(prediction.confidence), 0.0), 1.0)
        return MLLeadScore(
            lead_id=lead_id,
            score=score,
            confidence=round(confidence, 2),
            model_id=gateway.model_id,
            model_version=prediction.model_version,
            scored_at=utcnow(),
            features_used=list(features),
            prediction="high_value" if score > 0.5 else "low_value",
            insights=summarize_score(score, features),
            explanation=explain_prediction(prediction.contributions, features),
        )

    def _resolve_model_id(self, model_id: str | None) -> str:
        return self.registry.resolve(model_id).model_id

    def _record_cancelled(self, lead_id: int, model_id: str | None) -> None:
        logger.warning("Lead %s was cancelled before scoring started", lead_id)
        self.statistics.record_outcome(Outcome.ERROR, 0.0, model_id=model_id)

    # Telemetry

    def get_scoring_statistics(self) -> ScoringStatistics:
        return self.statistics.snapshot()

    def get_health_status(self) -> HealthStatus:
        return self.statistics.health(cache_size=self.cache.live_size(), queue_length=self.batches.queue_length)

    def reset_statistics(self) -> None:
        self.statistics.reset()

    # Cache management

    def clear_lead_cache(self, lead_id: int) -> int:
        removed = self.cache.invalidate(lead_id)
        logger.info("Cleared %d cached scores for lead %s", removed, lead_id)
        return removed

    def clear_model_cache(self, model_id: str) -> int:
        removed = self.cache.invalidate_model(model_id)
        logger.info("Cleared %d cached scores for model %s", removed, model_id)
        return removed

    def clear_all_caches(self) -> int:
        removed = self.cache.clear()
        logger.info("Cleared all %d cached scores", removed)
        return removed

    def update_cache_settings(self, ttl_ms: int) -> None:
        self.cache.ttl_ms = ttl_ms
        logger.info("Cache TTL set to %dms", ttl_ms)

    # Models

    def register_model(self, gateway: ModelGateway, *, default: bool = False) -> None:
        if self.registry.register(gateway, default=default):
            self.clear_model_cache(gateway.model_id)

    def list_models(self) -> list[str]:
        return self.registry.list()

    @property
    def default_model_id(self) -> str | None:
        return self.registry.default_model_id

    def close(self) -> None:
        self.batches.shutdown()

    def __enter__(self) -> ScoringService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["ScoringService"]
