"""
Retry policy — decides what happens after a job attempt fails.

By the time handle_failure() runs, the executor has already moved the job
to FAILED, saved it, and recorded the failure with the monitor. Two outcomes:

1. The error kind is retryable AND the job has attempts left
       FAILED → retry() → RETRYING, requeued with the kind's delay
2. Otherwise
       stays FAILED, pushed to the dead-letter queue

Delays come from the error kind (see jobs/errors.py):
    NetworkError 30s, DatabaseError 30s, ExternalServiceError 60s,
    JobTimeoutError 120s; a kind with no delay of its own falls back to
    the worker's configured retry_delay.

Lifecycle on failure:
    RUNNING → fail() → FAILED → retry() → RETRYING → (delay) → RUNNING
    RUNNING → fail() → FAILED                          (terminal → DLQ)

Requeueing happens through the same due-time queue as new jobs, so a retry
is just a job whose score lies a few seconds in the future. The queue entry
is written before the RETRYING row: if the store write fails, the executor
still finds the job on its next delivery and resumes from FAILED.
"""

import logging

from jobs.errors import DatabaseError, JobError
from models.metadata import JobMetadata
from worker.monitor import JobMonitor
from worker.queue import AbstractJobQueue, QueuedJob
from worker.store import AbstractJobStore

logger = logging.getLogger(__name__)


class RetryPolicy:

    def __init__(
        self,
        queue: AbstractJobQueue,
        store: AbstractJobStore,
        monitor: JobMonitor,
        default_delay: int = 30,
    ):
        self._queue = queue
        self._store = store
        self._monitor = monitor
        self._default_delay = default_delay

    def delay_for(self, error: JobError) -> int:
        return error.retry_delay_seconds() or self._default_delay

    def handle_failure(self, metadata: JobMetadata, error: JobError, queued: QueuedJob) -> bool:
        """
        Requeue or dead-letter a FAILED job.

        Returns:
            True if the job was requeued for another attempt.
        """
        if error.is_retryable() and metadata.can_retry():
            delay = self.delay_for(error)
            metadata.retry()
            self._queue.enqueue(metadata.id, queued.envelope, delay_seconds=delay)
            self._monitor.record_retry()
            try:
                self._store.save(metadata)
            except DatabaseError as e:
                logger.error(f"Job {metadata.id} requeued but its Retrying state was not saved: {e}")
            logger.info(
                f"Job {metadata.id} will be retried in {delay}s "
                f"({metadata.attempts}/{metadata.max_attempts}): {error}"
            )
            return True

        self._queue.dead_letter(metadata, queued.envelope)
        if error.is_retryable():
            logger.warning(
                f"Job {metadata.id} exhausted attempts ({metadata.max_attempts}), "
                f"moved to dead-letter queue: {error}"
            )
        else:
            logger.warning(f"Job {metadata.id} failed permanently, moved to dead-letter queue: {error}")
        return False

    def requeue_after_store_error(self, queued: QueuedJob, error: DatabaseError) -> int:
        """
        Put a claimed job back on the queue when its state couldn't be written.

        Returns:
            the delay in seconds before the job is due again.
        """
        delay = self.delay_for(error)
        self._queue.enqueue(queued.job_id, queued.envelope, delay_seconds=delay)
        logger.warning(f"Job {queued.job_id} requeued in {delay}s after a job store failure: {error}")
        return delay
