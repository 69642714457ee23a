"""
Abstract base class for job handlers.

Each job kind (DataValidation, Notification, FhirSync, ...) has exactly one
handler implementing this interface. The executor calls
handler.execute(payload, context) without knowing which kind it is — it
looks the handler up in the registry by the envelope's "type" tag.

Strategy pattern:
- AbstractJobHandler = interface
- DataValidationHandler, NotificationHandler, FhirSyncHandler = implementations
- registry.py = lookup table from taxonomy tag to handler

Rules for implementations:
- Return a fully built JobExecutionResult, or raise a JobError subclass.
- Never touch JobMetadata; lifecycle bookkeeping belongs to the executor.
- Expect to run again with the same payload after a retryable failure.
  Nothing deduplicates external side effects (an email sent twice is an
  accepted risk), so keep them as repeat-safe as the target system allows.

To add a new job kind:
1. Add the payload record in jobs/payloads.py
2. Create a class that inherits AbstractJobHandler
3. Implement execute(), name and job_type
4. Add it to the registry
"""

from abc import ABC, abstractmethod

from jobs.context import JobContext
from jobs.result import JobExecutionResult


class AbstractJobHandler(ABC):

    @abstractmethod
    def execute(self, payload, context: JobContext) -> JobExecutionResult:
        """
        Execute the job.

        Args:
            payload: the typed record parsed from the envelope — always the
                     record class matching this handler's job_type.
            context: job id, start time and executor-provided metadata
                     (job_type, attempt, job_timeout).

        Returns:
            JobExecutionResult — stored on the job record and logged.

        Raises:
            JobError subclass → the worker applies the retry policy for its kind.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier for logs and metrics (e.g. 'notification')."""
        ...

    @property
    @abstractmethod
    def job_type(self) -> str:
        """Taxonomy tag this handler serves, matching JobType (e.g. 'Notification')."""
        ...
