"""Rolling scoring statistics, health evaluation and Prometheus metrics."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram

from leadscore.config.settings import HealthConfig
from leadscore.schemas import HealthState, HealthStatus, PeakUsage, ScoringStatistics, TimeRange

logger = logging.getLogger(__name__)

scoring_requests = Counter("leadscore_scoring_requests_total", "Scoring attempts by outcome", ["outcome"])
scoring_latency = Histogram("leadscore_scoring_latency_seconds", "Scoring attempt latency")
cache_lookups = Counter("leadscore_cache_lookups_total", "Score cache lookups", ["result"])
gateway_calls = Counter("leadscore_gateway_calls_total", "Model gateway invocations", ["model_id", "result"])
batch_size = Histogram(
    "leadscore_batch_size",
    "Lead IDs per batch request",
    buckets=(1, 5, 10, 25, 50, 100, 250, 500, 1000),
)
active_requests = Gauge("leadscore_active_requests", "Scoring attempts in flight")


class Outcome(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    THROTTLED = "throttled"


def _to_datetime(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class StatisticsCollector:
    """Thread-safe counters aggregated over a rolling window.

    Throttled attempts count towards ``total_requests`` but are excluded from
    ``success_rate`` and ``error_rate``, which are computed over completed
    (success or error) attempts only.
    """

    def __init__(
        self,
        window_s: float = 3600.0,
        *,
        health: HealthConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.window_s = window_s
        self.health_config = health or HealthConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._started = clock()
        self._active = 0
        self._reset_locked(self._started)

    def _reset_locked(self, now: float) -> None:
        self._window_start = now
        self._counts = {outcome: 0 for outcome in Outcome}
        self._latency_total_ms = 0.0
        self._cache_hits = 0
        self._cache_misses = 0
        self._gateway_calls = 0
        self._gateway_failures = 0
        self._model_usage: dict[str, int] = {}
        self._per_minute: dict[int, int] = {}

    def _roll_locked(self, now: float) -> None:
        if now - self._window_start >= self.window_s:
            logger.info("Statistics window rolled over after %.0fs", now - self._window_start)
            self._reset_locked(now)

    def record_outcome(
        self,
        outcome: Outcome,
        latency_ms: float,
        *,
        cache_hit: bool | None = None,
        model_id: str | None = None,
    ) -> None:
        """Record one logical scoring attempt. ``cache_hit`` is None when no lookup happened."""

        outcome = Outcome(outcome)
        now = self._clock()
        with self._lock:
            self._roll_locked(now)
            self._counts[outcome] += 1
            self._latency_total_ms += max(latency_ms, 0.0)
            if cache_hit is not None:
                if cache_hit:
                    self._cache_hits += 1
                else:
                    self._cache_misses += 1
            if outcome is Outcome.SUCCESS and model_id:
                self._model_usage[model_id] = self._model_usage.get(model_id, 0) + 1
            minute = int(now // 60)
            self._per_minute[minute] = self._per_minute.get(minute, 0) + 1

        scoring_requests.labels(outcome=outcome.value).inc()
        scoring_latency.observe(max(latency_ms, 0.0) / 1000.0)
        if cache_hit is not None:
            cache_lookups.labels(result="hit" if cache_hit else "miss").inc()

    def record_gateway_call(self, success: bool, model_id: str = "unknown") -> None:
        now = self._clock()
        with self._lock:
            self._roll_locked(now)
            self._gateway_calls += 1
            if not success:
                self._gateway_failures += 1
        gateway_calls.labels(model_id=model_id, result="success" if success else "failure").inc()

    def record_batch(self, size: int) -> None:
        batch_size.observe(size)

    @contextmanager
    def track_active(self) -> Iterator[None]:
        with self._lock:
            self._active += 1
        active_requests.inc()
        try:
            yield
        finally:
            with self._lock:
                self._active -= 1
            active_requests.dec()

    @property
    def active_requests(self) -> int:
        with self._lock:
            return self._active

    def gateway_failure_rate(self) -> float:
        with self._lock:
            return self._gateway_failures / self._gateway_calls if self._gateway_calls else 0.0

    def snapshot(self) -> ScoringStatistics:
        now = self._clock()
        with self._lock:
            self._roll_locked(now)
            success = self._counts[Outcome.SUCCESS]
            error = self._counts[Outcome.ERROR]
            throttled = self._counts[Outcome.THROTTLED]
            total = success + error + throttled
            completed = success + error
            lookups = self._cache_hits + self._cache_misses

            if self._per_minute:
                peak_minute, peak_count = max(self._per_minute.items(), key=lambda item: item[1])
                peak = PeakUsage(timestamp=_to_datetime(peak_minute * 60), requests_per_minute=peak_count)
            else:
                peak = PeakUsage(timestamp=_to_datetime(now), requests_per_minute=0)

            return ScoringStatistics(
                total_requests=total,
                successful_requests=success,
                failed_requests=error,
                throttled_requests=throttled,
                success_rate=success / completed if completed else 1.0,
                error_rate=error / completed if completed else 0.0,
                throttle_rate=throttled / total if total else 0.0,
                average_response_time=self._latency_total_ms / total if total else 0.0,
                cache_hit_rate=self._cache_hits / lookups if lookups else 0.0,
                model_usage=dict(self._model_usage),
                time_range=TimeRange(start=_to_datetime(self._window_start), end=_to_datetime(now)),
                peak_usage=peak,
            )

    def evaluate_health(self, queue_length: int) -> HealthState:
        config = self.health_config
        with self._lock:
            calls = self._gateway_calls
            failure_rate = self._gateway_failures / calls if calls else 0.0
        enough = calls >= config.min_samples

        if queue_length >= config.unhealthy_queue_length or (enough and failure_rate >= config.unhealthy_error_rate):
            return "unhealthy"
        if queue_length >= config.degraded_queue_length or (enough and failure_rate >= config.degraded_error_rate):
            return "degraded"
        return "healthy"

    def health(self, *, cache_size: int, queue_length: int) -> HealthStatus:
        now = self._clock()
        stats = self.snapshot()
        return HealthStatus(
            status=self.evaluate_health(queue_length),
            uptime=max(now - self._started, 0.0),
            total_requests=stats.total_requests,
            average_response_time=stats.average_response_time,
            cache_size=cache_size,
            queue_length=queue_length,
            active_requests=self.active_requests,
            gateway_failure_rate=self.gateway_failure_rate(),
            last_updated=_to_datetime(now),
        )

    def reset(self) -> None:
        with self._lock:
            self._reset_locked(self._clock())


__all__ = ["Outcome", "StatisticsCollector"]
