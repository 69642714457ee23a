"""
JobRecord ORM model — maps to the "job_queue" table.

One row per job, holding both the envelope and the lifecycle state:
- job_data: the payload envelope exactly as submitted ({"type": ..., ...})
- status / attempts / max_attempts / last_error / progress: mirror JobMetadata
- job_metadata: the opaque metadata value from JobMetadata ("metadata" is
  reserved on declarative classes, hence the name)
- result: the JobExecutionResult of the last successful attempt

JSONB on PostgreSQL, plain JSON elsewhere (SQLite in the tests).
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from models.enums import JobStatus

JsonType = JSON().with_variant(JSONB(), "postgresql")


class JobRecord(Base):
    __tablename__ = "job_queue"

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    job_data: Mapped[dict] = mapped_column(JsonType, nullable=False)

    # ── Lifecycle ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=JobStatus.PENDING.value, nullable=False, index=True
    )
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    progress: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # ── Metadata & Results ──────────────────────────────────────
    job_metadata: Mapped[Any] = mapped_column("metadata", JsonType, nullable=True)
    result: Mapped[dict | None] = mapped_column(JsonType, nullable=True)

    # ── Timestamps ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<JobRecord {self.id} [{self.job_type}] {self.status}>"
