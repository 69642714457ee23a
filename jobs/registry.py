"""
Job handler registry — maps taxonomy tags to handler instances.

When the executor pulls a job off the queue, it knows the envelope's "type"
("Notification", "DataValidation", ...) but needs the handler that executes
it. This registry does that lookup.

A registry is an explicit object handed to the Worker, not a module global,
so tests can build one with fakes and the worker process builds one with
real HTTP clients. default_registry() is the one place that knows every
shipped handler.

Kinds with no registered handler still parse (the taxonomy is complete),
but dispatching them raises ProcessingError — non-retryable, so the job
fails once instead of looping through retries.
"""

from typing import Optional

import httpx

from jobs.base import AbstractJobHandler
from jobs.data_validation import DataValidationHandler
from jobs.errors import ProcessingError
from jobs.fhir_sync import FhirSyncHandler
from jobs.notification import NotificationHandler
from models.enums import JobType, NotificationChannel


def _tag(job_type) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


class HandlerRegistry:

    def __init__(self):
        # Handlers are instantiated once and reused (they're stateless)
        self._handlers: dict[str, AbstractJobHandler] = {}

    def register(self, handler: AbstractJobHandler) -> None:
        job_type = _tag(handler.job_type)
        if job_type in self._handlers:
            raise ValueError(f"Handler for job type '{job_type}' is already registered")
        self._handlers[job_type] = handler

    def get(self, job_type: str) -> AbstractJobHandler:
        """Look up a handler by taxonomy tag. Raises ProcessingError if none is registered."""
        handler = self._handlers.get(_tag(job_type))
        if handler is None:
            raise ProcessingError(
                f"No handler registered for job type '{_tag(job_type)}'. "
                f"Available: {self.job_types()}"
            )
        return handler

    def job_types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, job_type: object) -> bool:
        return _tag(job_type) in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def default_registry(
    notification_latencies: Optional[dict[NotificationChannel, float]] = None,
    fhir_client: Optional[httpx.Client] = None,
) -> HandlerRegistry:
    """Build a registry holding every shipped handler."""
    registry = HandlerRegistry()
    registry.register(DataValidationHandler())
    registry.register(NotificationHandler(latencies=notification_latencies))
    registry.register(FhirSyncHandler(client=fhir_client))
    return registry
