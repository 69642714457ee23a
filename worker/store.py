"""
Job store — the persisted, authoritative copy of every job's lifecycle.

The worker owns a JobMetadata only while one attempt runs; between attempts
(and across worker restarts) the row in job_queue is the source of truth.
Every call opens its own short-lived session, so the store is safe to use
from several worker threads at once.

Driver failures surface as DatabaseError, the retryable kind, so callers
can treat a store outage like any other transient job error.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from jobs.errors import DatabaseError
from jobs.result import JobExecutionResult
from models.enums import JobStatus
from models.job import JobRecord
from models.metadata import JobMetadata

logger = logging.getLogger(__name__)


class AbstractJobStore(ABC):

    @abstractmethod
    def create(self, metadata: JobMetadata, envelope: dict) -> None:
        """Persist a newly accepted job."""
        ...

    @abstractmethod
    def get(self, job_id: UUID) -> Optional[JobMetadata]:
        ...

    @abstractmethod
    def save(
        self,
        metadata: JobMetadata,
        result: Optional[JobExecutionResult] = None,
        expected: Optional[Iterable[JobStatus]] = None,
    ) -> bool:
        """
        Write the current lifecycle state; `result` is stored when given.

        With `expected`, the write only lands if the stored status is one of
        those statuses, and the return value says whether it did.
        """
        ...

    @abstractmethod
    def get_result(self, job_id: UUID) -> Optional[dict]:
        ...


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlJobStore(AbstractJobStore):

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise DatabaseError(f"Job store unavailable: {e}") from e

    def create(self, metadata: JobMetadata, envelope: dict) -> None:
        with self._session() as session:
            record = JobRecord(id=metadata.id, job_type=metadata.job_type, job_data=envelope)
            for column, value in self._values(metadata).items():
                setattr(record, column, value)
            session.add(record)
            session.commit()
        logger.debug(f"Stored job {metadata.id} [{metadata.job_type}]")

    def get(self, job_id: UUID) -> Optional[JobMetadata]:
        with self._session() as session:
            record = session.get(JobRecord, job_id)
            if record is None:
                return None
            return JobMetadata(
                id=record.id,
                job_type=record.job_type,
                status=record.status,
                created_at=_aware(record.created_at),
                started_at=_aware(record.started_at),
                completed_at=_aware(record.completed_at),
                attempts=record.attempts,
                max_attempts=record.max_attempts,
                last_error=record.last_error,
                progress=record.progress,
                metadata=record.job_metadata,
            )

    def save(
        self,
        metadata: JobMetadata,
        result: Optional[JobExecutionResult] = None,
        expected: Optional[Iterable[JobStatus]] = None,
    ) -> bool:
        values = self._values(metadata)
        if result is not None:
            values["result"] = result.model_dump(mode="json")

        stmt = (
            update(JobRecord)
            .where(JobRecord.id == metadata.id)
            .values({getattr(JobRecord, attr): value for attr, value in values.items()})
        )
        if expected is not None:
            stmt = stmt.where(JobRecord.status.in_([s.value for s in expected]))

        with self._session() as session:
            updated = session.execute(stmt).rowcount
            session.commit()

        if updated:
            return True
        if expected is None:
            raise DatabaseError(f"Job {metadata.id} does not exist in the job store")
        logger.debug(f"Job {metadata.id} changed underneath us, {metadata.status.value} not written")
        return False

    def get_result(self, job_id: UUID) -> Optional[dict]:
        with self._session() as session:
            record = session.get(JobRecord, job_id)
            return record.result if record is not None else None

    @staticmethod
    def _values(metadata: JobMetadata) -> dict[str, Any]:
        return {
            "status": metadata.status.value,
            "attempts": metadata.attempts,
            "max_attempts": metadata.max_attempts,
            "last_error": metadata.last_error,
            "progress": metadata.progress,
            "job_metadata": metadata.metadata,
            "created_at": metadata.created_at,
            "started_at": metadata.started_at,
            "completed_at": metadata.completed_at,
        }
