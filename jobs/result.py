"""
The outcome a handler returns from a successful invocation.

Handlers either return a fully built JobExecutionResult or raise a JobError,
never a half-filled result. The executor stores the result on the job record
(visible through GET /jobs/{id}) and logs its message.

    return (
        JobExecutionResult.succeeded_with_data("Validation completed", data)
        .with_metric("errors_count", 2)
    )
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class JobExecutionResult(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None
    metrics: dict[str, float] = Field(default_factory=dict)

    @classmethod
    def succeeded(cls, message: str) -> "JobExecutionResult":
        return cls(success=True, message=message)

    @classmethod
    def succeeded_with_data(cls, message: str, data: Any) -> "JobExecutionResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(cls, message: str) -> "JobExecutionResult":
        return cls(success=False, message=message)

    def with_metric(self, name: str, value: float) -> "JobExecutionResult":
        return self.model_copy(update={"metrics": {**self.metrics, name: float(value)}})
