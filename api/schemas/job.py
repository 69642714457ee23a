"""
Pydantic schemas for the /jobs endpoints.

These are NOT the domain models — they define the HTTP API contract:
- JobSubmit: what the caller sends when submitting a job (request body)
- JobResponse: what we send back for a single job (response body)

The envelope inside JobSubmit is kept as a plain object here and validated
by the worker's own envelope parser, so a job submitted over HTTP and one
submitted in-process are checked by exactly the same code.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from models.enums import JobStatus


class JobSubmit(BaseModel):
    """Request body for POST /jobs/."""

    job: dict[str, Any] = Field(
        ...,
        examples=[{
            "type": "Notification",
            "recipient_id": "7d4c5a8e-0f43-4c5e-9b1a-2f7d5b3c9e10",
            "notification_type": "Reminder",
            "message": "Your appointment is tomorrow at 9:00",
            "channel": "Email",
            "priority": "Normal",
        }],
    )
    max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        le=20,
        description="Defaults to the worker's configured max_retries",
    )
    delay_seconds: float = Field(
        default=0,
        ge=0,
        description="Seconds before the job becomes runnable",
    )


class JobResponse(BaseModel):
    """Response body for a single job — returned by GET /jobs/{id} and POST /jobs/."""

    id: UUID
    job_type: str
    status: JobStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    attempts: int
    max_attempts: int
    last_error: Optional[str] = None
    progress: float
    metadata: Any = None
    result: Optional[dict] = None
