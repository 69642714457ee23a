"""Tests for SqlJobStore (SQLite)."""

import uuid

import pytest
from sqlalchemy.orm import Session

from jobs.errors import DatabaseError
from jobs.result import JobExecutionResult
from models.base import Base
from models.enums import JobStatus
from models.job import JobRecord
from models.metadata import JobMetadata

ENVELOPE = {"type": "DataValidation", "validation_type": "Schema", "rules": [], "auto_fix": False}


def test_create_and_get(store):
    metadata = JobMetadata.new("DataValidation", max_attempts=5, metadata={"origin": "intake"})
    store.create(metadata, ENVELOPE)

    loaded = store.get(metadata.id)
    assert loaded.id == metadata.id
    assert loaded.job_type == "DataValidation"
    assert loaded.status == JobStatus.PENDING
    assert loaded.max_attempts == 5
    assert loaded.attempts == 0
    assert loaded.metadata == {"origin": "intake"}
    assert loaded.created_at.tzinfo is not None


def test_get_unknown_returns_none(store):
    assert store.get(uuid.uuid4()) is None
    assert store.get_result(uuid.uuid4()) is None


def test_envelope_is_stored_on_the_row(store, engine):
    metadata = JobMetadata.new("DataValidation")
    store.create(metadata, ENVELOPE)
    with Session(engine) as session:
        record = session.get(JobRecord, metadata.id)
        assert record.job_data == ENVELOPE
        assert record.updated_at is not None


def test_save_persists_transitions(store):
    metadata = JobMetadata.new("DataValidation")
    store.create(metadata, ENVELOPE)

    metadata.start()
    metadata.fail("database went away")
    store.save(metadata)

    loaded = store.get(metadata.id)
    assert loaded.status == JobStatus.FAILED
    assert loaded.attempts == 1
    assert loaded.last_error == "database went away"
    assert loaded.started_at is not None
    assert loaded.completed_at is not None
    assert loaded.can_retry()


def test_save_with_result(store):
    metadata = JobMetadata.new("DataValidation")
    store.create(metadata, ENVELOPE)
    metadata.start()
    metadata.complete()

    result = JobExecutionResult.succeeded_with_data("ok", {"errors_count": 0}).with_metric("rules_processed", 0)
    store.save(metadata, result)

    assert store.get(metadata.id).progress == 100.0
    assert store.get_result(metadata.id) == {
        "success": True,
        "message": "ok",
        "data": {"errors_count": 0},
        "metrics": {"rules_processed": 0.0},
    }


def test_save_without_result_keeps_previous_result(store):
    metadata = JobMetadata.new("DataValidation")
    store.create(metadata, ENVELOPE)
    metadata.start()
    store.save(metadata, JobExecutionResult.succeeded("first"))
    store.save(metadata)
    assert store.get_result(metadata.id)["message"] == "first"


def test_save_unknown_job_raises_database_error(store):
    with pytest.raises(DatabaseError):
        store.save(JobMetadata.new("DataValidation"))


def test_guarded_save_only_writes_from_expected_status(store):
    metadata = JobMetadata.new("Notification")
    store.create(metadata, {"type": "Notification"})

    started = store.get(metadata.id)
    started.start()
    cancelled = store.get(metadata.id)
    cancelled.cancel()

    assert store.save(started, expected=(JobStatus.PENDING,)) is True
    assert store.save(cancelled, expected=(JobStatus.PENDING,)) is False

    stored = store.get(metadata.id)
    assert stored.status == JobStatus.RUNNING
    assert stored.attempts == 1


def test_guarded_save_of_unknown_job_returns_false(store):
    assert store.save(JobMetadata.new("Notification"), expected=(JobStatus.PENDING,)) is False


def test_driver_errors_become_database_errors(store, engine):
    Base.metadata.drop_all(engine)
    with pytest.raises(DatabaseError) as exc_info:
        store.get(uuid.uuid4())
    assert exc_info.value.is_retryable()
