"""
Job monitor — process-wide execution statistics.

Every job completion, success or failure, calls record() from whichever
worker thread ran it, so all counters sit behind one lock. Readers never
see the live counters: get_stats() copies them into a frozen JobStats
while holding the lock, so a snapshot is always internally consistent
(successful_jobs + failed_jobs == total_jobs).

The running average is updated incrementally:

    avg_n = (avg_{n-1} * (n - 1) + d_n) / n

which keeps memory constant no matter how many jobs the worker has seen.

There is no module-level monitor. The worker entry point builds one and
hands it to the Worker; tests build their own.
"""

import threading
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

from models.enums import WorkerStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobStats(BaseModel):
    """Immutable snapshot of the monitor's counters."""

    model_config = ConfigDict(frozen=True)

    total_jobs: int = 0
    successful_jobs: int = 0
    failed_jobs: int = 0
    retried_jobs: int = 0
    average_duration_ms: float = 0.0
    last_updated: datetime


class WorkerHealth(BaseModel):
    """Derived view served by the health endpoint."""

    model_config = ConfigDict(frozen=True)

    status: WorkerStatus
    uptime_seconds: int
    jobs_processed: int
    success_rate: float
    average_duration_ms: float
    last_activity: datetime


def build_health(stats: JobStats, status: WorkerStatus, uptime_seconds: float) -> WorkerHealth:
    if stats.total_jobs == 0:
        success_rate = 0.0
    else:
        success_rate = stats.successful_jobs / stats.total_jobs * 100.0
    return WorkerHealth(
        status=status,
        uptime_seconds=int(uptime_seconds),
        jobs_processed=stats.total_jobs,
        success_rate=success_rate,
        average_duration_ms=stats.average_duration_ms,
        last_activity=stats.last_updated,
    )


class JobMonitor:

    def __init__(self):
        self._lock = threading.Lock()
        self._reset_counters()

    def _reset_counters(self) -> None:
        self._total = 0
        self._successful = 0
        self._failed = 0
        self._retried = 0
        self._average_ms = 0.0
        self._last_updated = _now()

    def record(self, duration_ms: float, success: bool) -> None:
        """Count one finished execution attempt and fold its duration into the average."""
        with self._lock:
            self._total += 1
            if success:
                self._successful += 1
            else:
                self._failed += 1
            n = self._total
            self._average_ms = (self._average_ms * (n - 1) + duration_ms) / n
            self._last_updated = _now()

    def record_retry(self) -> None:
        """Count a failed attempt that was requeued for another try."""
        with self._lock:
            self._retried += 1
            self._last_updated = _now()

    def get_stats(self) -> JobStats:
        with self._lock:
            return JobStats(
                total_jobs=self._total,
                successful_jobs=self._successful,
                failed_jobs=self._failed,
                retried_jobs=self._retried,
                average_duration_ms=self._average_ms,
                last_updated=self._last_updated,
            )

    def reset(self) -> None:
        with self._lock:
            self._reset_counters()
