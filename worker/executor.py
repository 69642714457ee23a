"""
Job executor — runs a single job attempt inside a worker thread.

This is the code that actually DOES THE WORK. Each worker thread calls
executor.execute(queued), and this method handles the full lifecycle of
one attempt:

    1. Load the job's metadata from the store; skip it if it's gone,
       cancelled, or already completed
    2. Build the JobContext and mark the job RUNNING (attempts += 1)
    3. Parse the envelope, find the handler for its type, call it
    4. On success: mark COMPLETED, store the result, record with the monitor
    5. On failure: mark FAILED, record with the monitor, then let the
       RetryPolicy decide between requeue and dead-letter

Every failure is turned into a JobError before step 5: handlers raise
JobError subclasses themselves, anything else (a stray KeyError, a driver
exception) goes through classify_exception(). A result with success=False
counts as a non-retryable ProcessingError.

Store failures:
    The job was already claimed from Redis when the attempt began, so a
    DatabaseError from the store at any step counts as a failed attempt
    with the monitor and puts the job back on the queue with the
    DatabaseError delay. The row may be left RUNNING or FAILED; step 1
    resumes from there on the next delivery:

        RUNNING  → fail() → FAILED → retry() → RETRYING → RUNNING
        FAILED   → retry() → RETRYING → RUNNING
        (no attempts left → dead-letter)

Moving to RUNNING is a guarded write: it only lands if the row still has
the status it was loaded with, so a concurrent cancel() wins cleanly.

Thread safety:
- The store opens its own session per call
- Handlers are stateless between executions
- The monitor is lock-guarded
So multiple threads can call execute() simultaneously without extra locks.
"""

import logging
import time
from typing import Optional

from jobs.context import JobContext
from jobs.errors import DatabaseError, JobError, ProcessingError, classify_exception
from jobs.payloads import parse_envelope
from jobs.registry import HandlerRegistry
from jobs.result import JobExecutionResult
from models.enums import JobStatus
from models.metadata import JobMetadata
from worker.monitor import JobMonitor
from worker.queue import QueuedJob
from worker.retry import RetryPolicy
from worker.store import AbstractJobStore

logger = logging.getLogger(__name__)

INTERRUPTED = "Attempt was interrupted before its outcome was saved"


class JobExecutor:

    def __init__(
        self,
        store: AbstractJobStore,
        registry: HandlerRegistry,
        monitor: JobMonitor,
        retry_policy: RetryPolicy,
        job_timeout: int = 300,
    ):
        self._store = store
        self._registry = registry
        self._monitor = monitor
        self._retry_policy = retry_policy
        self._job_timeout = job_timeout

    def execute(self, queued: QueuedJob) -> Optional[JobMetadata]:
        """
        Execute one attempt of a queued job. Called by Worker from a thread.

        Returns:
            the job's metadata after the attempt, or None if it was skipped
            or put back on the queue after a store failure
        """
        start_time = time.monotonic()
        try:
            return self._attempt(queued)
        except DatabaseError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._monitor.record(elapsed_ms, False)
            self._retry_policy.requeue_after_store_error(queued, e)
            return None

    def _attempt(self, queued: QueuedJob) -> Optional[JobMetadata]:
        job_id = queued.job_id

        # ── Steps 1-2: Load and mark RUNNING ────────────────────
        metadata = self._claim(queued)
        if metadata is None:
            return None

        context = (
            JobContext.new(job_id)
            .with_metadata("job_type", metadata.job_type)
            .with_metadata("attempt", str(metadata.attempts))
            .with_metadata("job_timeout", str(self._job_timeout))
        )

        # ── Step 3: Find handler and execute ────────────────────
        start_time = time.monotonic()
        result: Optional[JobExecutionResult] = None
        error: Optional[JobError] = None
        try:
            payload = parse_envelope(queued.envelope)
            handler = self._registry.get(payload.type)
            result = handler.execute(payload, context)
            if not result.success:
                raise ProcessingError(result.message)
        except JobError as e:
            error = e
        except Exception as e:
            logger.error(f"Job {job_id} raised an unexpected {type(e).__name__}", exc_info=True)
            error = classify_exception(e)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if error is not None:
            self._on_failure(metadata, error, queued, elapsed_ms, result)
            return metadata

        # ── Step 4: Mark COMPLETED ──────────────────────────────
        metadata.complete()
        self._store.save(metadata, result)
        self._monitor.record(elapsed_ms, True)

        logger.info(
            f"Job {job_id} [{metadata.job_type}] completed in {elapsed_ms:.1f}ms "
            f"(attempt {metadata.attempts}/{metadata.max_attempts}): {result.message}"
        )
        return metadata

    def _claim(self, queued: QueuedJob) -> Optional[JobMetadata]:
        """Load the job and move it to RUNNING, or return None if this delivery has nothing to run."""
        job_id = queued.job_id
        metadata = self._store.get(job_id)
        if metadata is None:
            logger.warning(f"Job {job_id} not found in the job store, skipping")
            return None
        loaded = metadata.status
        if loaded in (JobStatus.CANCELLED, JobStatus.COMPLETED):
            logger.info(f"Job {job_id} is {loaded.value}, skipping")
            return None

        if loaded == JobStatus.RUNNING:
            logger.warning(f"Job {job_id} was left Running by an earlier attempt, counting it as failed")
            metadata.fail(INTERRUPTED)
        if metadata.status == JobStatus.FAILED:
            if not metadata.can_retry():
                if self._store.save(metadata, expected=(loaded,)):
                    error = DatabaseError(metadata.last_error or INTERRUPTED)
                    self._retry_policy.handle_failure(metadata, error, queued)
                return None
            metadata.retry()

        metadata.start()
        if not self._store.save(metadata, expected=(loaded,)):
            logger.info(f"Job {job_id} left {loaded.value} before it could start, skipping")
            return None
        return metadata

    def _on_failure(
        self,
        metadata: JobMetadata,
        error: JobError,
        queued: QueuedJob,
        elapsed_ms: float,
        result: Optional[JobExecutionResult],
    ) -> None:
        logger.error(
            f"Job {metadata.id} [{metadata.job_type}] failed on attempt "
            f"{metadata.attempts}/{metadata.max_attempts}: {error}"
        )

        metadata.fail(error.message)
        self._store.save(metadata, result)
        self._monitor.record(elapsed_ms, False)
        self._retry_policy.handle_failure(metadata, error, queued)
