from __future__ import annotations

import threading

import pytest

from leadscore.config.settings import BatchConfig, RetryConfig
from leadscore.exceptions import InvalidBatchInput, LeadNotFound, ModelNotFound
from leadscore.models import GatewayRegistry
from leadscore.schemas import MLLeadScore
from leadscore.scoring import BatchOrchestrator, RateLimiter, ScoringService
from tests.fixtures.doubles import FakeGateway, ManualClock


def make_score(lead_id: int, model_id: str | None = None) -> MLLeadScore:
    return MLLeadScore(
        lead_id=lead_id,
        score=0.5,
        confidence=0.5,
        model_id=model_id or "m1",
        prediction="low_value",
        insights=["Lower conversion probability - nurture over time"],
    )


class BlockingScorer:
    """Records call order and blocks until ``release`` is set."""

    def __init__(self, *, blocked: set[int] | None = None) -> None:
        self.release = threading.Event()
        self.blocked = blocked
        self.started: list[int] = []
        self.settled: dict[int, bool] = {}
        self._cond = threading.Condition()

    def __call__(self, lead_id, model_id, *, use_cache, wait_for_admission, settle):
        with self._cond:
            self.started.append(lead_id)
            self._cond.notify_all()
        if self.blocked is None or lead_id in self.blocked:
            self.release.wait(5)
        self.settled[lead_id] = settle()
        if lead_id < 0:
            raise LeadNotFound(lead_id)
        return make_score(lead_id, model_id)

    def wait_started(self, lead_id: int, timeout: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: lead_id in self.started, timeout)


@pytest.fixture
def scorer():
    scorer = BlockingScorer()
    yield scorer
    scorer.release.set()


def start_blocking_batch(orchestrator: BatchOrchestrator, scorer: BlockingScorer, lead_id: int = 1) -> threading.Thread:
    thread = threading.Thread(target=orchestrator.score_batch, args=([lead_id],), kwargs={"priority": "high"})
    thread.start()
    assert scorer.wait_started(lead_id)
    return thread


# Service level


def test_empty_batch_completes_immediately(service: ScoringService) -> None:
    result = service.score_leads_batch([])

    assert result.status == "completed"
    assert result.total_leads == 0
    assert result.processed_leads == 0
    assert result.results == []
    assert result.errors == []


def test_empty_batch_without_registered_models(leads) -> None:
    with ScoringService(GatewayRegistry(), leads) as service:
        result = service.score_leads_batch([])

    assert result.status == "completed"


def test_batch_with_partial_failure(service: ScoringService) -> None:
    result = service.score_leads_batch([123, 99999, 124], priority="high")

    assert result.status == "completed"
    assert result.total_leads == 3
    assert result.processed_leads == 2
    assert len(result.errors) == 1
    assert result.errors[0].lead_id == 99999
    assert "not found" in result.errors[0].error
    assert result.request_id.startswith("batch_")


def test_every_lead_id_reported_exactly_once(service: ScoringService) -> None:
    lead_ids = [123, 124, 99999, 125, 0, 126]

    result = service.score_leads_batch(lead_ids, priority="high")

    reported = [score.lead_id for score in result.results] + [error.lead_id for error in result.errors]
    assert sorted(reported) == sorted(lead_ids)


def test_batch_uses_requested_model(service: ScoringService) -> None:
    result = service.score_leads_batch([123, 124], "m2", "high")

    assert result.model_id == "m2"
    assert {score.model_id for score in result.results} == {"m2"}


def test_batch_resolves_default_model(service: ScoringService) -> None:
    result = service.score_leads_batch([123, 124])

    assert result.model_id == "m1"
    assert {score.model_id for score in result.results} == {"m1"}


def test_medium_batch_runs_synchronously_when_idle(service: ScoringService) -> None:
    result = service.score_leads_batch([123, 124, 125], priority="medium")

    assert result.status == "completed"
    assert result.processed_leads == 3
    assert service.get_batch_result(result.request_id).status == "completed"


@pytest.mark.parametrize(
    "lead_ids",
    [[1, "2"], [1, 1], [True], "123", None],
    ids=["mixed-types", "duplicates", "bool", "string", "none"],
)
def test_invalid_batch_inputs(service: ScoringService, lead_ids) -> None:
    with pytest.raises(InvalidBatchInput):
        service.score_leads_batch(lead_ids)


def test_oversized_batch_rejected(registry, leads) -> None:
    with ScoringService(registry, leads, batch=BatchConfig(max_batch_size=2)) as service:
        with pytest.raises(InvalidBatchInput, match="exceeds"):
            service.score_leads_batch([123, 124, 125])


def test_unknown_priority_rejected(service: ScoringService) -> None:
    with pytest.raises(InvalidBatchInput, match="priority"):
        service.score_leads_batch([123], priority="urgent")


def test_unknown_batch_model_rejected(service: ScoringService, gateway: FakeGateway) -> None:
    with pytest.raises(ModelNotFound):
        service.score_leads_batch([123], "missing")
    assert gateway.calls == 0


def test_high_priority_items_are_throttled(leads) -> None:
    registry = GatewayRegistry()
    registry.register(FakeGateway("m1"))
    limiter = RateLimiter(1, 60_000, clock=ManualClock())

    with ScoringService(registry, leads, limiter=limiter, retry=RetryConfig(backoff_ms=0)) as service:
        result = service.score_leads_batch([123, 124], priority="high")
        stats = service.get_scoring_statistics()

    assert result.processed_leads == 1
    assert len(result.errors) == 1
    assert "Rate limit exceeded" in result.errors[0].error
    assert stats.throttled_requests == 1


def test_batch_statistics_count_each_lead(service: ScoringService) -> None:
    service.score_leads_batch([123, 124, 99999], priority="high")

    stats = service.get_scoring_statistics()
    assert stats.total_requests == 3
    assert stats.successful_requests == 2
    assert stats.failed_requests == 1


def test_unknown_request_id(service: ScoringService) -> None:
    assert service.get_batch_result("batch_0_missing") is None
    assert service.wait_for_batch("batch_0_missing", timeout=0.1) is None


# Orchestrator level


def test_deferred_batch_converges(scorer: BlockingScorer) -> None:
    orchestrator = BatchOrchestrator(scorer, max_workers=4, timeout_s=5)
    blocker = start_blocking_batch(orchestrator, scorer)

    queued = orchestrator.score_batch([2, 3], priority="medium")
    assert queued.status == "processing"
    assert queued.processed_leads == 0

    scorer.release.set()
    blocker.join(5)
    final = orchestrator.wait(queued.request_id, timeout=5)

    assert final.status == "completed"
    assert final.processed_leads == 2
    assert final.completed_at is not None
    orchestrator.shutdown()


def test_medium_batches_run_before_low(scorer: BlockingScorer) -> None:
    orchestrator = BatchOrchestrator(scorer, max_workers=4, timeout_s=5)
    blocker = start_blocking_batch(orchestrator, scorer)

    first = orchestrator.score_batch([2], priority="low")
    low = orchestrator.score_batch([3], priority="low")
    medium = orchestrator.score_batch([4], priority="medium")

    scorer.release.set()
    blocker.join(5)
    for request_id in (first.request_id, low.request_id, medium.request_id):
        assert orchestrator.wait(request_id, timeout=5).status == "completed"

    assert scorer.started.index(4) < scorer.started.index(3)
    orchestrator.shutdown()


def test_full_queue_rejects_new_batches(scorer: BlockingScorer) -> None:
    orchestrator = BatchOrchestrator(scorer, max_workers=4, timeout_s=5, max_queued=1)
    blocker = start_blocking_batch(orchestrator, scorer)

    orchestrator.score_batch([2], priority="low")
    assert scorer.wait_started(2)
    orchestrator.score_batch([3], priority="low")
    assert orchestrator.queue_length == 1

    with pytest.raises(InvalidBatchInput, match="full"):
        orchestrator.score_batch([4], priority="low")

    scorer.release.set()
    blocker.join(5)
    orchestrator.shutdown()


def test_timeout_marks_unfinished_leads_as_errors() -> None:
    scorer = BlockingScorer(blocked={2})
    orchestrator = BatchOrchestrator(scorer, max_workers=4)

    try:
        result = orchestrator.score_batch([1, 2], priority="high", timeout_s=0.2)
    finally:
        scorer.release.set()

    assert result.status == "completed"
    assert [score.lead_id for score in result.results] == [1]
    assert result.errors[0].lead_id == 2
    assert "timed out after 0.2s" in result.errors[0].error
    orchestrator.shutdown()

    assert scorer.settled == {1: True, 2: False}


def test_timed_out_leads_that_never_started_are_reported_cancelled() -> None:
    scorer = BlockingScorer()
    cancelled: list[int] = []
    orchestrator = BatchOrchestrator(
        scorer,
        max_workers=1,
        on_cancelled=lambda lead_id, model_id: cancelled.append(lead_id),
    )

    try:
        result = orchestrator.score_batch([1, 2, 3], priority="high", timeout_s=0.2)
    finally:
        scorer.release.set()

    assert cancelled == [2, 3]
    assert sorted(error.lead_id for error in result.errors) == [1, 2, 3]
    assert scorer.started == [1]
    orchestrator.shutdown()


def test_failures_are_captured_per_lead() -> None:
    scorer = BlockingScorer(blocked=set())
    orchestrator = BatchOrchestrator(scorer)

    result = orchestrator.score_batch([5, -1, 6], priority="high")

    assert result.processed_leads == 2
    assert result.errors[0].lead_id == -1
    orchestrator.shutdown()


def test_shutdown_fails_pending_batches(scorer: BlockingScorer) -> None:
    orchestrator = BatchOrchestrator(scorer, max_workers=4, timeout_s=5)
    blocker = start_blocking_batch(orchestrator, scorer)

    orchestrator.score_batch([2], priority="low")
    assert scorer.wait_started(2)
    pending = orchestrator.score_batch([3, 4], priority="low")

    orchestrator.shutdown(wait=False)
    result = orchestrator.get_result(pending.request_id)

    assert result.status == "failed"
    assert sorted(error.lead_id for error in result.errors) == [3, 4]
    assert "shut down" in result.errors[0].error
    with pytest.raises(InvalidBatchInput):
        orchestrator.score_batch([5], priority="high")

    scorer.release.set()
    blocker.join(5)


def test_timed_out_leads_are_not_recorded_as_successes(leads) -> None:
    registry = GatewayRegistry()
    slow = FakeGateway("m1", delay=0.5)
    registry.register(slow)

    with ScoringService(registry, leads) as service:
        result = service.score_leads_batch([123, 124], priority="high", timeout_s=0.1)
    # close() waits for the late attempts to finish
    stats = service.get_scoring_statistics()

    assert result.processed_leads == 0
    assert len(result.errors) == 2
    assert slow.calls == 2
    assert stats.total_requests == 2
    assert stats.successful_requests == 0
    assert stats.failed_requests == 2
    assert service.cache.live_size() == 0
