"""
Validation Queue - Bounded-concurrency scheduler for per-record enrichment.

═══════════════════════════════════════════════════════════════════════════════
STATE MACHINE
═══════════════════════════════════════════════════════════════════════════════

  pending -> processing -> completed
                        -> pending     (retry, attempts < max_attempts)
                        -> failed      (retries exhausted, error classified)

  completed and failed are terminal. A retried job keeps its place in the
  list, so it starts again before jobs added after it.

═══════════════════════════════════════════════════════════════════════════════
SCHEDULING
═══════════════════════════════════════════════════════════════════════════════

  Whenever a job is added, a job finishes, or the queue is resumed:
      available = concurrency - processing_count
      start the first `available` pending jobs (insertion order)

  Everything runs on one asyncio event loop, so slot filling and state
  transitions never interleave. Jobs are marked processing before their
  task is created, so a slot can never be handed out twice.

═══════════════════════════════════════════════════════════════════════════════
GOTCHAS
═══════════════════════════════════════════════════════════════════════════════

  • The enriched record is merged with the original (user flags re-asserted)
    BEFORE the job is marked completed, so on_complete never sees a result
    with enrichment-supplied flags.
  • add_job() outside a running event loop only queues the job; it starts
    on the next call made from inside the loop (join(), resume(), ...).
  • clear_all_jobs() forgets in-flight jobs. Their late outcomes are
    ignored. Pass cancel_in_flight=True to also cancel their tasks.
  • Public methods never raise for job failures; failures are job state.
  • A validate callable that returns something other than a Record, or a
    result the merge cannot handle, fails the job like a raised error.

═══════════════════════════════════════════════════════════════════════════════
"""

from __future__ import annotations

import asyncio
import logging
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
)

from model_catalog import config
from model_catalog.errors import (
    EmptyValidationResult,
    ErrorKind,
    ValidationCancelled,
    classify_exception,
    error_message,
)
from model_catalog.jobs.models import (
    JobStatus,
    ValidationJob,
    ValidationSource,
    new_job_id,
)
from model_catalog.merge.repair import merge_enriched
from model_catalog.records.models import Record

logger = logging.getLogger(__name__)

ValidateFn = Callable[[Record, List[ValidationSource]], Awaitable[Record]]
ProgressCallback = Callable[[int, int], None]
JobCallback = Callable[[ValidationJob], None]

DEFAULT_SOURCES = (ValidationSource.API,)


class ValidationQueue:
    """
    In-memory queue running at most `concurrency` enrichment calls at once.

    Owned by the caller; create one per screen/session rather than sharing
    a module-level instance.
    """

    def __init__(
        self,
        validate: ValidateFn,
        concurrency: Optional[int] = None,
        max_attempts: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_complete: Optional[JobCallback] = None,
        on_error: Optional[JobCallback] = None,
    ):
        """
        Args:
            validate: async (record, sources) -> enriched record
            concurrency: Max jobs in flight (default CATALOG_VALIDATION_CONCURRENCY)
            max_attempts: Default attempts per job (default CATALOG_VALIDATION_MAX_ATTEMPTS)
            on_progress: Called with (finished, total) as jobs move
            on_complete: Called once per completed job
            on_error: Called once per failed job
        """
        self.concurrency = concurrency if concurrency is not None else config.VALIDATION_CONCURRENCY
        self.max_attempts = max_attempts if max_attempts is not None else config.VALIDATION_MAX_ATTEMPTS
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        self._validate = validate
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._on_error = on_error

        self._jobs: List[ValidationJob] = []
        self._tasks: Dict[str, asyncio.Task] = {}
        self._paused = False
        # Bumped by clear_all_jobs(); tasks from an older generation are orphans.
        self._generation = 0
        self._idle_waiters: List[asyncio.Future] = []
        self._listeners: List[asyncio.Queue] = []

    # =========================================================================
    # ADDING JOBS
    # =========================================================================

    def add_job(
        self,
        record: Record,
        sources: Sequence[ValidationSource] = DEFAULT_SOURCES,
        max_attempts: Optional[int] = None,
    ) -> ValidationJob:
        """Queue one record and start it if a slot is free."""
        job = ValidationJob(
            id=new_job_id(),
            record=record.copy(),
            sources=list(sources),
            max_attempts=max_attempts or self.max_attempts,
        )
        self._jobs.append(job)
        logger.debug("Queued job %s for %s", job.id, record.display_name())
        self._process_queue()
        return job

    def add_jobs(
        self,
        records: Sequence[Record],
        sources: Sequence[ValidationSource] = DEFAULT_SOURCES,
        max_attempts: Optional[int] = None,
    ) -> List[ValidationJob]:
        """Queue several records, in order."""
        return [self.add_job(record, sources, max_attempts) for record in records]

    async def validate_selected(
        self,
        records: Sequence[Record],
        sources: Sequence[ValidationSource] = DEFAULT_SOURCES,
    ) -> AsyncIterator[ValidationJob]:
        """
        Queue records and yield each job as it reaches a terminal state.

        Jobs are yielded in completion order. Iteration stops early if the
        queue is cleared.
        """
        listener: asyncio.Queue = asyncio.Queue()
        self._listeners.append(listener)
        try:
            jobs = self.add_jobs(records, sources)
            remaining = {job.id for job in jobs}
            while remaining:
                job = await listener.get()
                if job is None:
                    return
                if job.id in remaining:
                    remaining.discard(job.id)
                    yield job
        finally:
            self._listeners.remove(listener)

    # =========================================================================
    # CONTROL
    # =========================================================================

    def pause(self) -> None:
        """Stop starting new jobs. In-flight jobs run to completion."""
        self._paused = True
        self._check_idle()

    def resume(self) -> None:
        self._paused = False
        self._process_queue()

    def is_paused(self) -> bool:
        return self._paused

    def clear_finished_jobs(self) -> None:
        """Drop completed and failed jobs."""
        self._jobs = [j for j in self._jobs if not j.status.is_terminal]

    def clear_all_jobs(self, cancel_in_flight: bool = False) -> None:
        """
        Pause, then forget every job including in-flight ones.

        The caller must abort in-flight provider calls separately unless
        cancel_in_flight is set.
        """
        self.pause()
        self._generation += 1
        tasks = list(self._tasks.values())
        self._jobs = []
        self._tasks = {}

        if cancel_in_flight:
            for task in tasks:
                task.cancel()

        for listener in self._listeners:
            listener.put_nowait(None)

        logger.info("Cleared validation queue (%d in-flight jobs orphaned)", len(tasks))
        self._check_idle()

    async def join(self) -> None:
        """
        Wait until nothing is processing and nothing can start.

        Returns with pending jobs left over if the queue is paused.
        """
        self._process_queue()
        loop = asyncio.get_running_loop()
        while not self._is_idle():
            waiter = loop.create_future()
            self._idle_waiters.append(waiter)
            await waiter

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_jobs(self) -> List[ValidationJob]:
        return list(self._jobs)

    def get_job(self, job_id: str) -> Optional[ValidationJob]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def _count(self, status: JobStatus) -> int:
        return sum(1 for j in self._jobs if j.status == status)

    def get_pending_count(self) -> int:
        return self._count(JobStatus.PENDING)

    def get_processing_count(self) -> int:
        return self._count(JobStatus.PROCESSING)

    def get_completed_count(self) -> int:
        return self._count(JobStatus.COMPLETED)

    def get_failed_count(self) -> int:
        return self._count(JobStatus.FAILED)

    def get_total_count(self) -> int:
        return len(self._jobs)

    # =========================================================================
    # SCHEDULER
    # =========================================================================

    def _process_queue(self) -> None:
        if self._paused:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        available = self.concurrency - self.get_processing_count()
        if available <= 0:
            return

        to_start = [j for j in self._jobs if j.status == JobStatus.PENDING][:available]
        for job in to_start:
            job.status = JobStatus.PROCESSING
            job.attempts += 1
            job.touch()
            logger.debug("Starting job %s (attempt %d/%d)", job.id, job.attempts, job.max_attempts)
            self._tasks[job.id] = loop.create_task(self._run_job(job, self._generation))

        self._report_progress()

    async def _run_job(self, job: ValidationJob, generation: int) -> None:
        try:
            enriched = await self._validate(job.record, list(job.sources))
            if enriched is None:
                raise EmptyValidationResult()
            if not isinstance(enriched, Record):
                raise EmptyValidationResult(
                    f"Validation returned {type(enriched).__name__}, expected a record"
                )
            merged = merge_enriched(job.record, enriched)
        except Exception as exc:
            if generation == self._generation:
                self._handle_failure(job, exc)
        else:
            if generation == self._generation:
                self._handle_success(job, merged)
        finally:
            if generation == self._generation:
                self._tasks.pop(job.id, None)
                self._report_progress()
                self._process_queue()
                self._check_idle()

    def _handle_success(self, job: ValidationJob, merged: Record) -> None:
        job.result = merged
        job.status = JobStatus.COMPLETED
        job.error = None
        job.touch()
        logger.info("Job %s completed: %s", job.id, job.record.display_name())

        self._invoke(self._on_complete, job)
        self._notify(job)

    def _handle_failure(self, job: ValidationJob, exc: Exception) -> None:
        message = error_message(exc)
        retryable = not isinstance(exc, ValidationCancelled)

        if retryable and job.attempts < job.max_attempts:
            job.status = JobStatus.PENDING
            job.error = f"{message} (Retrying {job.attempts}/{job.max_attempts})"
            job.touch()
            logger.warning("Job %s failed, will retry: %s", job.id, job.error)
            return

        classified = classify_exception(exc)
        if classified.kind == ErrorKind.UNKNOWN:
            job.error = f"{message} (Failed after {job.attempts} attempts)"
        else:
            job.error = classified.message
        job.status = JobStatus.FAILED
        job.touch()
        logger.error("Job %s failed: %s", job.id, job.error)

        self._invoke(self._on_error, job)
        self._notify(job)

    # =========================================================================
    # NOTIFICATION
    # =========================================================================

    def _invoke(self, callback: Optional[JobCallback], job: ValidationJob) -> None:
        if callback is None:
            return
        try:
            callback(job)
        except Exception:
            logger.exception("Job callback raised for %s", job.id)

    def _notify(self, job: ValidationJob) -> None:
        for listener in self._listeners:
            listener.put_nowait(job)

    def _report_progress(self) -> None:
        if self._on_progress is None or not self._jobs:
            return
        finished = self.get_completed_count() + self.get_failed_count()
        try:
            self._on_progress(finished, len(self._jobs))
        except Exception:
            logger.exception("Progress callback raised")

    def _is_idle(self) -> bool:
        if self.get_processing_count() > 0:
            return False
        return self._paused or self.get_pending_count() == 0

    def _check_idle(self) -> None:
        if not self._is_idle():
            return
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)


__all__ = [
    "ValidationQueue",
    "ValidateFn",
    "DEFAULT_SOURCES",
]
