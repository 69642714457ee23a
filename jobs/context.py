"""
Per-invocation execution context handed to a job handler.

A JobContext is created by the executor for exactly one execution attempt
and thrown away afterwards. It is frozen: adding metadata returns a new
context instead of mutating the one a handler already holds.

    context = (
        JobContext.new(job_id)
        .with_metadata("job_type", "Notification")
        .with_metadata("job_timeout", "300")
    )
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional
from uuid import UUID


@dataclass(frozen=True)
class JobContext:
    job_id: UUID
    started_at: datetime
    metadata: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def new(cls, job_id: UUID) -> "JobContext":
        return cls(job_id=job_id, started_at=datetime.now(timezone.utc))

    def with_metadata(self, key: str, value: str) -> "JobContext":
        merged = {**self.metadata, key: value}
        return replace(self, metadata=MappingProxyType(merged))

    def get_metadata(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.metadata.get(key, default)

    @property
    def timeout_seconds(self) -> Optional[float]:
        """The configured job_timeout, if the executor attached one."""
        raw = self.metadata.get("job_timeout")
        return float(raw) if raw else None
