"""
Job error taxonomy and the retry policy keyed by error kind.

Handlers signal failure by raising one of the JobError subclasses below.
Every kind has two fixed properties, looked up from RETRY_POLICY:

    | Kind                 | Retryable | Delay (s) |
    |----------------------|-----------|-----------|
    | ValidationError      | no        | 0         |
    | ProcessingError      | no        | 0         |
    | ExternalServiceError | yes       | 60        |
    | DatabaseError        | yes       | 30        |
    | NetworkError         | yes       | 30        |
    | TimeoutError         | yes       | 120       |
    | SerializationError   | no        | 0         |
    | ConfigurationError   | no        | 0         |
    | UnknownError         | no        | 0         |

Retryable kinds are transient (the FHIR server was down, the database
dropped a connection) — running the same payload again later can succeed.
Non-retryable kinds mean the job itself is wrong, so retrying only burns
attempts.

The timeout kind is called JobTimeoutError in Python so it does not shadow
the builtin TimeoutError; its kind value is still "TimeoutError".
"""

import enum
import json
from dataclasses import dataclass

import httpx
import pydantic
from redis import exceptions as redis_exceptions
from sqlalchemy import exc as sa_exc


class JobErrorKind(str, enum.Enum):
    VALIDATION = "ValidationError"
    PROCESSING = "ProcessingError"
    EXTERNAL_SERVICE = "ExternalServiceError"
    DATABASE = "DatabaseError"
    NETWORK = "NetworkError"
    TIMEOUT = "TimeoutError"
    SERIALIZATION = "SerializationError"
    CONFIGURATION = "ConfigurationError"
    UNKNOWN = "UnknownError"


@dataclass(frozen=True)
class RetryRule:
    retryable: bool
    delay_seconds: int


RETRY_POLICY: dict[JobErrorKind, RetryRule] = {
    JobErrorKind.VALIDATION: RetryRule(retryable=False, delay_seconds=0),
    JobErrorKind.PROCESSING: RetryRule(retryable=False, delay_seconds=0),
    JobErrorKind.EXTERNAL_SERVICE: RetryRule(retryable=True, delay_seconds=60),
    JobErrorKind.DATABASE: RetryRule(retryable=True, delay_seconds=30),
    JobErrorKind.NETWORK: RetryRule(retryable=True, delay_seconds=30),
    JobErrorKind.TIMEOUT: RetryRule(retryable=True, delay_seconds=120),
    JobErrorKind.SERIALIZATION: RetryRule(retryable=False, delay_seconds=0),
    JobErrorKind.CONFIGURATION: RetryRule(retryable=False, delay_seconds=0),
    JobErrorKind.UNKNOWN: RetryRule(retryable=False, delay_seconds=0),
}


class JobError(Exception):
    """Base class for every failure a job can end with."""

    kind: JobErrorKind = JobErrorKind.UNKNOWN
    description: str = "Unknown error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def is_retryable(self) -> bool:
        return RETRY_POLICY[self.kind].retryable

    def retry_delay_seconds(self) -> int:
        return RETRY_POLICY[self.kind].delay_seconds

    def __str__(self) -> str:
        return f"{self.description}: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(JobError):
    kind = JobErrorKind.VALIDATION
    description = "Job validation failed"


class ProcessingError(JobError):
    kind = JobErrorKind.PROCESSING
    description = "Job processing failed"


class ExternalServiceError(JobError):
    kind = JobErrorKind.EXTERNAL_SERVICE
    description = "External service error"


class DatabaseError(JobError):
    kind = JobErrorKind.DATABASE
    description = "Database error"


class NetworkError(JobError):
    kind = JobErrorKind.NETWORK
    description = "Network error"


class JobTimeoutError(JobError):
    kind = JobErrorKind.TIMEOUT
    description = "Timeout error"


class SerializationError(JobError):
    kind = JobErrorKind.SERIALIZATION
    description = "Serialization error"


class ConfigurationError(JobError):
    kind = JobErrorKind.CONFIGURATION
    description = "Configuration error"


class UnknownError(JobError):
    kind = JobErrorKind.UNKNOWN
    description = "Unknown error"


def classify_exception(exc: BaseException) -> JobError:
    """
    Map an exception that escaped a handler onto the taxonomy.

    Handlers are supposed to raise JobError themselves, but a bug or an
    unexpected library error should still get a sensible retry decision
    instead of crashing the worker thread. Order matters: timeouts are
    checked before the broader transport/connection classes they inherit from.
    """
    if isinstance(exc, JobError):
        return exc

    message = str(exc) or type(exc).__name__

    if isinstance(exc, (httpx.TimeoutException, redis_exceptions.TimeoutError, TimeoutError)):
        return JobTimeoutError(message)
    if isinstance(exc, (httpx.TransportError, redis_exceptions.ConnectionError, ConnectionError)):
        return NetworkError(message)
    if isinstance(exc, httpx.HTTPStatusError):
        return ExternalServiceError(message)
    if isinstance(exc, sa_exc.SQLAlchemyError):
        return DatabaseError(message)
    if isinstance(exc, (pydantic.ValidationError, json.JSONDecodeError)):
        return SerializationError(message)
    return UnknownError(message)
