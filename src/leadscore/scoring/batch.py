"""Batch scoring with partial failures, priorities and a background queue."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
import uuid
from collections import Counter, OrderedDict
from collections.abc import Callable, Sequence
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from functools import partial

from leadscore.exceptions import InvalidBatchInput, ScoringError
from leadscore.schemas import BatchError, BatchScoringResult, MLLeadScore, Priority, utcnow

logger = logging.getLogger(__name__)

PRIORITY_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}

ScoreFn = Callable[..., MLLeadScore]


def new_request_id() -> str:
    return f"batch_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class _BatchJob:
    """Mutable progress of one batch; snapshots are taken under its lock."""

    def __init__(
        self,
        lead_ids: list[int],
        *,
        model_id: str | None,
        priority: Priority,
        use_cache: bool,
        timeout_s: float,
    ) -> None:
        self.request_id = new_request_id()
        self.lead_ids = lead_ids
        self.model_id = model_id
        self.priority = priority
        self.use_cache = use_cache
        self.timeout_s = timeout_s
        self.status = "processing"
        self.results: list[MLLeadScore] = []
        self.errors: list[BatchError] = []
        self.completed_at = None
        self.processing_time = 0.0
        self.done = threading.Event()
        self._started = time.perf_counter()
        self._lock = threading.Lock()
        self._settled: set[int] = set()
        self._expired: set[int] = set()

    def settle(self, lead_id: int) -> bool:
        """Claim delivery of ``lead_id``'s outcome. False once the batch gave up on it."""

        with self._lock:
            if lead_id in self._expired:
                return False
            self._settled.add(lead_id)
            return True

    def expire(self, lead_id: int) -> bool:
        """Give up on ``lead_id``. False when its attempt already settled."""

        with self._lock:
            if lead_id in self._settled:
                return False
            self._expired.add(lead_id)
            return True

    def add_result(self, score: MLLeadScore) -> None:
        with self._lock:
            self.results.append(score)

    def add_error(self, lead_id: int, message: str) -> None:
        with self._lock:
            self.errors.append(BatchError(lead_id=lead_id, error=message))

    def finish(self, status: str = "completed") -> None:
        with self._lock:
            self.status = status
            self.completed_at = utcnow()
            self.processing_time = (time.perf_counter() - self._started) * 1000
        self.done.set()

    def snapshot(self) -> BatchScoringResult:
        with self._lock:
            elapsed = self.processing_time if self.done.is_set() else (time.perf_counter() - self._started) * 1000
            return BatchScoringResult(
                request_id=self.request_id,
                status=self.status,  # type: ignore[arg-type]
                priority=self.priority,
                model_id=self.model_id,
                total_leads=len(self.lead_ids),
                processed_leads=len(self.results),
                results=list(self.results),
                errors=list(self.errors),
                processing_time=round(elapsed, 3),
                completed_at=self.completed_at,
            )


@dataclass(order=True)
class _QueuedBatch:
    rank: int
    sequence: int
    job: _BatchJob = field(compare=False)


class BatchOrchestrator:
    """Fan lead IDs out to ``score_fn`` on a shared thread pool.

    ``score_fn(lead_id, model_id, *, use_cache, wait_for_admission, settle)``
    scores a single lead and raises ``ScoringError`` subclasses on failure;
    each failure is captured against its lead ID without aborting the batch.
    ``settle()`` returns False once the batch has reported the lead as timed
    out, in which case the attempt must not count as a success.

    High priority batches, and any batch submitted while nothing else is
    pending or running, execute synchronously. Other batches are queued for a
    background worker (medium before low) and the caller receives a
    ``processing`` snapshot.
    """

    def __init__(
        self,
        score_fn: ScoreFn,
        *,
        resolve_model: Callable[[str | None], str] | None = None,
        on_cancelled: Callable[[int, str | None], None] | None = None,
        on_submit: Callable[[int], None] | None = None,
        max_batch_size: int = 500,
        max_workers: int = 8,
        timeout_s: float = 30.0,
        max_queued: int = 100,
        queue_waits_for_admission: bool = True,
        result_retention: int = 1000,
    ) -> None:
        self._score_fn = score_fn
        self._resolve_model = resolve_model
        self._on_cancelled = on_cancelled
        self._on_submit = on_submit
        self.max_batch_size = max_batch_size
        self.timeout_s = timeout_s
        self.max_queued = max_queued
        self.queue_waits_for_admission = queue_waits_for_admission
        self.result_retention = result_retention

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="leadscore-batch")
        self._cond = threading.Condition()
        self._pending: list[_QueuedBatch] = []
        self._sequence = itertools.count()
        self._running = 0
        self._closed = False
        self._worker: threading.Thread | None = None
        self._jobs: OrderedDict[str, _BatchJob] = OrderedDict()

    def _validate(self, lead_ids: Sequence[int], priority: str) -> list[int]:
        if isinstance(lead_ids, (str, bytes)) or not isinstance(lead_ids, Sequence):
            raise InvalidBatchInput("lead_ids must be a list of integers")
        ids = list(lead_ids)
        invalid = [value for value in ids if isinstance(value, bool) or not isinstance(value, int)]
        if invalid:
            raise InvalidBatchInput(f"Lead IDs must be integers, got {invalid[:5]!r}")
        if len(ids) > self.max_batch_size:
            raise InvalidBatchInput(f"Batch of {len(ids)} leads exceeds the limit of {self.max_batch_size}")
        duplicates = sorted(value for value, count in Counter(ids).items() if count > 1)
        if duplicates:
            raise InvalidBatchInput(f"Duplicate lead IDs in batch: {duplicates[:5]!r}")
        if priority not in PRIORITY_RANK:
            raise InvalidBatchInput(f"Unknown priority '{priority}', expected one of {list(PRIORITY_RANK)}")
        return ids

    def score_batch(
        self,
        lead_ids: Sequence[int],
        model_id: str | None = None,
        priority: Priority = "medium",
        *,
        use_cache: bool = True,
        timeout_s: float | None = None,
    ) -> BatchScoringResult:
        ids = self._validate(lead_ids, priority)
        timeout = self.timeout_s if timeout_s is None else timeout_s
        if timeout <= 0:
            raise InvalidBatchInput("timeout_s must be positive")

        # Resolve once so a batch never mixes models
        resolved = model_id
        if ids and self._resolve_model is not None:
            resolved = self._resolve_model(model_id)
        job = _BatchJob(ids, model_id=resolved, priority=priority, use_cache=use_cache, timeout_s=timeout)
        if self._on_submit is not None:
            self._on_submit(len(ids))

        if not ids:
            job.finish()
            self._remember(job)
            return job.snapshot()

        with self._cond:
            if self._closed:
                raise InvalidBatchInput("Batch orchestrator is shut down")
            deferred = priority != "high" and (bool(self._pending) or self._running > 0)
            if deferred:
                if len(self._pending) >= self.max_queued:
                    raise InvalidBatchInput(f"Batch queue is full ({self.max_queued} pending)")
                heapq.heappush(self._pending, _QueuedBatch(PRIORITY_RANK[priority], next(self._sequence), job))
                self._remember(job)
                self._ensure_worker()
                self._cond.notify_all()
            else:
                self._running += 1

        if deferred:
            logger.info("Queued %s (%d leads, priority %s)", job.request_id, len(ids), priority)
            return job.snapshot()

        self._remember(job)
        try:
            self._run(job, wait_for_admission=False)
        finally:
            with self._cond:
                self._running -= 1
                self._cond.notify_all()
        return job.snapshot()

    def _run(self, job: _BatchJob, *, wait_for_admission: bool) -> None:
        futures: dict[Future[MLLeadScore], int] = {
            self._executor.submit(
                self._score_fn,
                lead_id,
                job.model_id,
                use_cache=job.use_cache,
                wait_for_admission=wait_for_admission,
                settle=partial(job.settle, lead_id),
            ): lead_id
            for lead_id in job.lead_ids
        }
        handled: set[Future[MLLeadScore]] = set()

        try:
            for future in as_completed(futures, timeout=job.timeout_s):
                handled.add(future)
                self._collect(job, future, futures[future])
        except FuturesTimeout:
            late = [future for future in futures if future not in handled]
            logger.warning("%s timed out after %.1fs with %d leads unfinished", job.request_id, job.timeout_s, len(late))
            for future in late:
                lead_id = futures[future]
                if not job.expire(lead_id):
                    # Attempt settled before the deadline; its outcome is about to land
                    self._collect(job, future, lead_id)
                    continue
                if future.cancel() and self._on_cancelled is not None:
                    self._on_cancelled(lead_id, job.model_id)
                job.add_error(lead_id, f"Scoring timed out after {job.timeout_s:g}s")

        job.finish()
        snapshot = job.snapshot()
        logger.info(
            "Completed %s: %d scored, %d errors in %.1fms",
            job.request_id,
            snapshot.processed_leads,
            len(snapshot.errors),
            snapshot.processing_time,
        )

    def _collect(self, job: _BatchJob, future: Future[MLLeadScore], lead_id: int) -> None:
        try:
            job.add_result(future.result())
        except ScoringError as exc:
            job.add_error(lead_id, str(exc))
        except CancelledError:
            job.add_error(lead_id, "Scoring cancelled before it started")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure scoring lead %s in %s", lead_id, job.request_id)
            job.add_error(lead_id, f"Unexpected error: {exc}")

    def _ensure_worker(self) -> None:
        if self._worker is None or not self._worker.is_alive():
            self._worker = threading.Thread(target=self._work, name="leadscore-batch-queue", daemon=True)
            self._worker.start()

    def _work(self) -> None:
        while True:
            with self._cond:
                while not self._pending and not self._closed:
                    self._cond.wait()
                if self._closed:
                    return
                entry = heapq.heappop(self._pending)
                self._running += 1
            try:
                self._run(entry.job, wait_for_admission=self.queue_waits_for_admission)
            except Exception:  # noqa: BLE001
                logger.exception("Background batch %s failed", entry.job.request_id)
                entry.job.finish("failed")
            finally:
                with self._cond:
                    self._running -= 1
                    self._cond.notify_all()

    def _remember(self, job: _BatchJob) -> None:
        with self._cond:
            self._jobs[job.request_id] = job
            while len(self._jobs) > self.result_retention:
                oldest_id, oldest = next(iter(self._jobs.items()))
                if not oldest.done.is_set():
                    break
                del self._jobs[oldest_id]

    def get_result(self, request_id: str) -> BatchScoringResult | None:
        with self._cond:
            job = self._jobs.get(request_id)
        return job.snapshot() if job is not None else None

    def wait(self, request_id: str, timeout: float | None = None) -> BatchScoringResult | None:
        with self._cond:
            job = self._jobs.get(request_id)
        if job is None:
            return None
        job.done.wait(timeout)
        return job.snapshot()

    @property
    def queue_length(self) -> int:
        with self._cond:
            return len(self._pending)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker; batches still queued are marked failed."""

        with self._cond:
            if self._closed:
                return
            self._closed = True
            abandoned = [entry.job for entry in self._pending]
            self._pending.clear()
            self._cond.notify_all()

        for job in abandoned:
            for lead_id in job.lead_ids:
                job.add_error(lead_id, "Scoring service shut down before the batch ran")
            job.finish("failed")

        if wait and self._worker is not None:
            self._worker.join(timeout=self.timeout_s)
        self._executor.shutdown(wait=wait, cancel_futures=True)


__all__ = ["BatchOrchestrator", "PRIORITY_RANK", "new_request_id"]
