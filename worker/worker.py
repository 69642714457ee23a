"""
Worker — polls the job queue and runs handlers on a thread pool.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                        Worker                           │
    │                                                         │
    │  Poll Thread                                            │
    │  ┌───────────────────────────┐                          │
    │  │ wait(poll_interval)       │  ← returns early on stop │
    │  │ fetch_due(free slots)     │                          │
    │  └──────────┬────────────────┘                          │
    │             │ submit() in queue order                   │
    │             ▼                                           │
    │  ┌──────────────────────────────────────────────┐       │
    │  │ ThreadPoolExecutor (max_workers threads)     │       │
    │  │  JobExecutor.execute(queued) per job         │       │
    │  └──────────────────────────────────────────────┘       │
    │             │                                           │
    │             ▼                                           │
    │  JobMonitor (lock-guarded)   job store   retry policy   │
    └─────────────────────────────────────────────────────────┘

Backpressure: the poll thread never fetches more jobs than there are free
slots (max_workers - in_flight). A job stays in Redis until a thread is
actually free to run it, instead of piling up in the executor's internal
queue where a crash would lose it.

Shutdown is cooperative: stop() sets the shutdown event, the poll loop
exits at its next wait, and the thread pool is drained with wait=True.
Running handlers are never interrupted; they finish and record their
outcome like any other attempt.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Union
from uuid import UUID

from config.settings import WorkerSettings
from jobs.payloads import NotificationJob, PayloadModel, parse_envelope
from jobs.registry import HandlerRegistry
from models.enums import WorkerStatus
from models.metadata import InvalidTransitionError, JobMetadata
from worker.executor import JobExecutor
from worker.monitor import JobMonitor, JobStats, WorkerHealth, build_health
from worker.queue import AbstractJobQueue
from worker.retry import RetryPolicy
from worker.store import AbstractJobStore

logger = logging.getLogger(__name__)


class Worker:

    def __init__(
        self,
        config: WorkerSettings,
        queue: AbstractJobQueue,
        store: AbstractJobStore,
        monitor: JobMonitor,
        registry: HandlerRegistry,
    ):
        self._config = config
        self._queue = queue
        self._store = store
        self._monitor = monitor
        self._registry = registry

        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="job-worker",
        )
        self._job_executor = JobExecutor(
            store,
            registry,
            monitor,
            RetryPolicy(queue, store, monitor, default_delay=config.retry_delay),
            job_timeout=config.job_timeout,
        )

        self._shutdown = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._in_flight = 0
        self._started_at: Optional[float] = None
        self._status = WorkerStatus.STARTING

    @property
    def status(self) -> WorkerStatus:
        with self._lock:
            return self._status

    def _transition(self, status: WorkerStatus, *allowed: WorkerStatus) -> bool:
        """Move to `status` if the current status is one of `allowed` (any, when none given)."""
        with self._lock:
            if allowed and self._status not in allowed:
                return False
            self._status = status
            return True

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    # ── Submission ──────────────────────────────────────────────

    def submit(
        self,
        envelope: Union[PayloadModel, dict, str, bytes],
        max_attempts: Optional[int] = None,
        delay_seconds: float = 0,
    ) -> JobMetadata:
        """
        Accept a job: validate its envelope, persist it as PENDING, enqueue it.

        A Notification with a future scheduled_for is held back until then,
        even when delay_seconds is shorter.

        Raises:
            SerializationError: the envelope isn't a valid job payload
        """
        payload = envelope if isinstance(envelope, PayloadModel) else parse_envelope(envelope)
        normalized = payload.to_envelope()
        if isinstance(payload, NotificationJob):
            delay_seconds = max(delay_seconds, payload.seconds_until_due())

        metadata = JobMetadata.new(
            payload.type,
            max_attempts=max_attempts or self._config.max_retries,
        )
        self._store.create(metadata, normalized)
        self._queue.enqueue(metadata.id, normalized, delay_seconds=delay_seconds)

        logger.info(f"Accepted job {metadata.id} [{metadata.job_type}] (max_attempts={metadata.max_attempts})")
        return metadata

    # ── Poll loop ───────────────────────────────────────────────

    def poll_once(self) -> int:
        """Hand every due job that fits in a free slot to the thread pool. Returns how many."""
        with self._lock:
            free = self._config.max_workers - self._in_flight
        if free <= 0:
            return 0

        batch = self._queue.fetch_due(free)
        for queued in batch:
            logger.debug(f"Dispatching job {queued.job_id} to thread pool")
            with self._lock:
                self._in_flight += 1
            future: Future = self._executor.submit(self._job_executor.execute, queued)
            future.add_done_callback(self._on_job_done)
        return len(batch)

    def run(self) -> None:
        """
        Poll until stop() is called.

        A failed poll (Redis down, a bad queue entry) is logged and the loop
        carries on at the next tick; the worker reports Error until a poll
        succeeds again.
        """
        while not self._shutdown.wait(self._config.poll_interval):
            try:
                self.poll_once()
                self._transition(WorkerStatus.RUNNING, WorkerStatus.ERROR)
            except Exception as e:
                self._transition(WorkerStatus.ERROR, WorkerStatus.RUNNING)
                logger.error(f"Poll error: {e}", exc_info=True)

    def start(self) -> None:
        """Start the poll thread that feeds jobs to the thread pool."""
        self._started_at = time.monotonic()
        self._transition(WorkerStatus.RUNNING)
        self._thread = threading.Thread(target=self.run, name="job-poller", daemon=True)
        self._thread.start()
        logger.info(
            f"Worker started with {self._config.max_workers} threads, "
            f"polling every {self._config.poll_interval}s "
            f"(handlers: {', '.join(self._registry.job_types())})"
        )

    def stop(self) -> None:
        """Signal the poll loop to stop, then wait for in-flight jobs to finish."""
        if not self._transition(
            WorkerStatus.STOPPING, WorkerStatus.STARTING, WorkerStatus.RUNNING, WorkerStatus.ERROR
        ):
            return
        logger.info(f"Worker stopping, waiting for {self.in_flight} in-flight jobs")

        self._shutdown.set()
        if self._thread is not None:
            self._thread.join()
        self._executor.shutdown(wait=True)

        self._transition(WorkerStatus.STOPPED)
        logger.info("Worker stopped")

    def _on_job_done(self, future: Future) -> None:
        """
        Callback fired when a worker thread finishes executing a job.

        Frees the slot, and logs anything that escaped JobExecutor (Redis
        failing while a job is requeued, for instance). Normal success/failure
        handling happens inside JobExecutor.execute().
        """
        with self._lock:
            self._in_flight -= 1
        exc = future.exception()
        if exc is not None:
            logger.error(f"Unhandled worker exception: {exc}", exc_info=exc)

    # ── Queries & administration ────────────────────────────────

    def cancel(self, job_id: UUID) -> Optional[JobMetadata]:
        """
        Cancel a job that hasn't started its current attempt yet.

        Returns None for an unknown job. Raises InvalidTransitionError when
        the job is running or already finished.
        """
        metadata = self._store.get(job_id)
        if metadata is None:
            return None
        loaded = metadata.status
        metadata.cancel()
        # Only lands if no worker thread moved the job since it was read
        if not self._store.save(metadata, expected=(loaded,)):
            current = self._store.get(job_id)
            raise InvalidTransitionError("cancel", current.status if current else loaded)
        logger.info(f"Job {job_id} cancelled")
        return metadata

    def get_job(self, job_id: UUID) -> Optional[JobMetadata]:
        return self._store.get(job_id)

    def get_result(self, job_id: UUID) -> Optional[dict[str, Any]]:
        return self._store.get_result(job_id)

    def dead_letters(self) -> list[dict]:
        return self._queue.dead_letters()

    def get_stats(self) -> JobStats:
        return self._monitor.get_stats()

    def reset_stats(self) -> JobStats:
        self._monitor.reset()
        logger.info("Job statistics reset")
        return self._monitor.get_stats()

    def uptime_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def health_check(self) -> WorkerHealth:
        return build_health(self._monitor.get_stats(), self.status, self.uptime_seconds())
