"""
Tests for the JobMetadata state machine.

Every drawn transition is exercised, and every undrawn one must raise
InvalidTransitionError without touching the record.
"""

import pytest

from models.enums import JobStatus
from models.metadata import InvalidTransitionError, JobMetadata


def _running(max_attempts=3):
    metadata = JobMetadata.new("Notification", max_attempts=max_attempts)
    metadata.start()
    return metadata


def test_new_job_is_pending():
    metadata = JobMetadata.new("DataValidation", metadata={"source": "intake"})
    assert metadata.status == JobStatus.PENDING
    assert metadata.attempts == 0
    assert metadata.max_attempts == 3
    assert metadata.progress == 0.0
    assert metadata.started_at is None
    assert metadata.completed_at is None
    assert metadata.metadata == {"source": "intake"}


def test_ids_are_unique():
    assert JobMetadata.new("Notification").id != JobMetadata.new("Notification").id


def test_start_marks_running_and_counts_attempt():
    metadata = _running()
    assert metadata.status == JobStatus.RUNNING
    assert metadata.attempts == 1
    assert metadata.started_at is not None


def test_complete():
    metadata = _running()
    metadata.complete()
    assert metadata.status == JobStatus.COMPLETED
    assert metadata.progress == 100.0
    assert metadata.completed_at >= metadata.started_at
    assert metadata.duration() is not None
    assert metadata.is_terminal


def test_fail_records_error():
    metadata = _running()
    metadata.fail("FHIR server unreachable")
    assert metadata.status == JobStatus.FAILED
    assert metadata.last_error == "FHIR server unreachable"
    assert metadata.completed_at is not None


def test_can_retry_until_attempts_exhausted():
    metadata = _running(max_attempts=2)
    metadata.fail("first")
    assert metadata.can_retry()
    assert not metadata.is_terminal

    metadata.retry()
    assert metadata.status == JobStatus.RETRYING
    metadata.start()
    assert metadata.attempts == 2
    metadata.fail("second")

    assert not metadata.can_retry()
    assert metadata.is_terminal


def test_can_retry_boundary():
    metadata = _running()
    metadata.fail("x")
    metadata.attempts = metadata.max_attempts
    assert not metadata.can_retry()
    metadata.attempts = metadata.max_attempts - 1
    assert metadata.can_retry()


def test_can_retry_only_when_failed():
    assert not JobMetadata.new("Notification").can_retry()
    assert not _running().can_retry()


def test_new_attempt_resets_timing():
    metadata = _running()
    metadata.fail("boom")
    first_started = metadata.started_at
    metadata.retry()
    metadata.start()
    assert metadata.started_at >= first_started
    assert metadata.completed_at is None
    assert metadata.duration() is None


def test_duration_requires_both_timestamps():
    assert JobMetadata.new("Notification").duration() is None
    assert _running().duration() is None


def test_double_start_is_rejected():
    metadata = _running()
    with pytest.raises(InvalidTransitionError):
        metadata.start()
    assert metadata.attempts == 1


def test_complete_requires_running():
    metadata = JobMetadata.new("Notification")
    with pytest.raises(InvalidTransitionError) as exc_info:
        metadata.complete()
    assert str(exc_info.value) == "Cannot complete a job in Pending state"
    assert metadata.status == JobStatus.PENDING


def test_fail_requires_running():
    with pytest.raises(InvalidTransitionError):
        JobMetadata.new("Notification").fail("nope")


def test_completed_job_cannot_restart():
    metadata = _running()
    metadata.complete()
    with pytest.raises(InvalidTransitionError):
        metadata.start()


def test_retry_rejected_when_exhausted():
    metadata = _running(max_attempts=1)
    metadata.fail("only attempt")
    with pytest.raises(InvalidTransitionError):
        metadata.retry()
    assert metadata.status == JobStatus.FAILED


def test_cancel_pending_and_retrying():
    pending = JobMetadata.new("Notification")
    pending.cancel()
    assert pending.status == JobStatus.CANCELLED
    assert pending.is_terminal

    retrying = _running()
    retrying.fail("x")
    retrying.retry()
    retrying.cancel()
    assert retrying.status == JobStatus.CANCELLED


def test_cancel_running_is_rejected():
    metadata = _running()
    with pytest.raises(InvalidTransitionError):
        metadata.cancel()
    assert metadata.status == JobStatus.RUNNING


def test_invalid_transition_is_a_value_error():
    assert issubclass(InvalidTransitionError, ValueError)
