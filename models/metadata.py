"""
JobMetadata — the lifecycle record of one job and its state machine.

    Pending ──start()──> Running ──complete()──> Completed
                           │
                           └──fail(msg)──> Failed ──retry()──> Retrying ──start()──> Running
                                             (only while attempts < max_attempts)

    Pending / Retrying ──cancel()──> Cancelled

Terminal states: Completed, Cancelled, and Failed once attempts have
reached max_attempts. Every transition not drawn above raises
InvalidTransitionError, and the record is left untouched.

Attempt counting: start() increments attempts and is strictly
one-call-per-attempt. Calling start() twice without a fail()/retry() in
between raises instead of silently counting a phantom attempt, so
attempts always equals the number of times a handler was actually invoked.

started_at is the start of the CURRENT attempt (overwritten on every start),
and completed_at is cleared when a new attempt starts, so duration() always
describes one attempt, never the wall time across retries.

The worker owns an instance only for the span of one execution attempt;
the persisted copy in the job store (models/job.py) is the source of truth
between attempts.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from models.enums import JobStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InvalidTransitionError(ValueError):
    """Raised when a lifecycle method is called from a state that doesn't allow it."""

    def __init__(self, action: str, status: JobStatus):
        super().__init__(f"Cannot {action} a job in {status.value} state")
        self.action = action
        self.status = status


class JobMetadata(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    job_type: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    last_error: Optional[str] = None
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    metadata: Any = None

    @classmethod
    def new(cls, job_type: str, max_attempts: int = 3, metadata: Any = None) -> "JobMetadata":
        return cls(job_type=job_type, max_attempts=max_attempts, metadata=metadata)

    # ── Transitions ─────────────────────────────────────────────

    def start(self) -> None:
        self._require("start", JobStatus.PENDING, JobStatus.RETRYING)
        self.status = JobStatus.RUNNING
        self.started_at = _now()
        self.completed_at = None
        self.attempts += 1

    def complete(self) -> None:
        self._require("complete", JobStatus.RUNNING)
        self.status = JobStatus.COMPLETED
        self.completed_at = _now()
        self.progress = 100.0

    def fail(self, error_message: str) -> None:
        self._require("fail", JobStatus.RUNNING)
        self.status = JobStatus.FAILED
        self.completed_at = _now()
        self.last_error = error_message

    def retry(self) -> None:
        if not self.can_retry():
            raise InvalidTransitionError("retry", self.status)
        self.status = JobStatus.RETRYING

    def cancel(self) -> None:
        self._require("cancel", JobStatus.PENDING, JobStatus.RETRYING)
        self.status = JobStatus.CANCELLED
        self.completed_at = _now()

    # ── Queries ─────────────────────────────────────────────────

    def can_retry(self) -> bool:
        return self.status == JobStatus.FAILED and self.attempts < self.max_attempts

    def duration(self) -> Optional[timedelta]:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    @property
    def is_terminal(self) -> bool:
        if self.status in (JobStatus.COMPLETED, JobStatus.CANCELLED):
            return True
        return self.status == JobStatus.FAILED and not self.can_retry()

    def _require(self, action: str, *allowed: JobStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(action, self.status)
