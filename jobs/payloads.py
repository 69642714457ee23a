"""
Job taxonomy — one typed payload record per kind of background work.

A job travels as an envelope: a JSON object whose "type" field names the
kind, plus the fields that kind requires.

    {
        "type": "Notification",
        "recipient_id": "7d4c...",
        "notification_type": "Reminder",
        "message": "Your appointment is tomorrow at 9:00",
        "channel": "Email",
        "priority": "Normal",
        "scheduled_for": null
    }

JobPayload is a pydantic discriminated union over the eight records, so
pydantic picks the record from the "type" field alone and then validates
that record's fields. Every record forbids extra fields: an envelope that
says "Notification" but carries DataExport fields is rejected, not
half-parsed.

To add a new job kind:
1. Add the tag to JobType in models/enums.py
2. Add a record here and include it in JobPayload
3. Write a handler and register it in jobs/registry.py
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Mapping, Optional, Union
from uuid import UUID

import pydantic
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from jobs.errors import SerializationError
from models.enums import (
    AnalyticsType,
    AuditReportType,
    CleanupType,
    ExportFormat,
    ImportFormat,
    NotificationChannel,
    NotificationType,
    OutputFormat,
    Priority,
    SyncDirection,
    ValidationSeverity,
    ValidationType,
)


class PayloadModel(BaseModel):
    """Common base: strict field set, immutable once parsed."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    def to_envelope(self) -> dict[str, Any]:
        """JSON-compatible envelope, the exact inverse of parse_envelope()."""
        return self.model_dump(mode="json")


# ── Shared records ──────────────────────────────────────────────


class ValidationRule(PayloadModel):
    name: str
    description: str
    rule_type: str
    expression: str
    severity: ValidationSeverity


class DateRange(PayloadModel):
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.start > self.end:
            raise ValueError("date_range.start must not be after date_range.end")
        return self


# ── Taxonomy ────────────────────────────────────────────────────


class FhirSyncJob(PayloadModel):
    """Synchronize one patient's resources between two FHIR servers."""

    type: Literal["FhirSync"] = "FhirSync"
    patient_id: UUID
    resource_type: str
    source_url: str
    target_url: str
    last_sync: Optional[datetime] = None
    sync_direction: SyncDirection


class DataValidationJob(PayloadModel):
    """Run a list of validation rules against patient data."""

    type: Literal["DataValidation"] = "DataValidation"
    patient_id: Optional[UUID] = None
    validation_type: ValidationType
    rules: list[ValidationRule]
    auto_fix: bool


class AuditReportJob(PayloadModel):
    type: Literal["AuditReport"] = "AuditReport"
    report_type: AuditReportType
    date_range: DateRange
    patient_ids: Optional[list[UUID]] = None
    practitioner_ids: Optional[list[UUID]] = None
    output_format: OutputFormat


class NotificationJob(PayloadModel):
    """Deliver a message to a user over one channel."""

    type: Literal["Notification"] = "Notification"
    recipient_id: UUID
    notification_type: NotificationType
    message: str
    channel: NotificationChannel
    priority: Priority
    scheduled_for: Optional[datetime] = None

    def seconds_until_due(self) -> float:
        """Seconds until scheduled_for (naive times are UTC); 0 when unscheduled or already due."""
        if self.scheduled_for is None:
            return 0.0
        scheduled_for = self.scheduled_for
        if scheduled_for.tzinfo is None:
            scheduled_for = scheduled_for.replace(tzinfo=timezone.utc)
        return max((scheduled_for - datetime.now(timezone.utc)).total_seconds(), 0.0)


class DataExportJob(PayloadModel):
    type: Literal["DataExport"] = "DataExport"
    patient_ids: list[UUID]
    export_format: ExportFormat
    include_resources: list[str]
    output_location: str
    encryption_key: Optional[str] = None


class DataImportJob(PayloadModel):
    type: Literal["DataImport"] = "DataImport"
    source_location: str
    import_format: ImportFormat
    mapping_config: Optional[str] = None
    validation_rules: list[ValidationRule]
    auto_merge: bool


class DataCleanupJob(PayloadModel):
    type: Literal["DataCleanup"] = "DataCleanup"
    cleanup_type: CleanupType
    older_than: datetime
    dry_run: bool
    preserve_audit: bool


class AnalyticsJob(PayloadModel):
    type: Literal["Analytics"] = "Analytics"
    analytics_type: AnalyticsType
    date_range: DateRange
    dimensions: list[str]
    metrics: list[str]
    output_location: str


JobPayload = Annotated[
    Union[
        FhirSyncJob,
        DataValidationJob,
        AuditReportJob,
        NotificationJob,
        DataExportJob,
        DataImportJob,
        DataCleanupJob,
        AnalyticsJob,
    ],
    Field(discriminator="type"),
]

_ENVELOPE = TypeAdapter(JobPayload)


def parse_envelope(data: Mapping[str, Any] | str | bytes) -> JobPayload:
    """
    Turn a raw envelope (dict or JSON text) into its typed payload record.

    Raises:
        SerializationError: unknown or missing "type", a missing required
            field, an unexpected field, a badly typed value, or invalid JSON.
            Non-retryable — the same bytes will never parse on a second try.
    """
    try:
        if isinstance(data, (str, bytes, bytearray)):
            return _ENVELOPE.validate_json(data)
        return _ENVELOPE.validate_python(data)
    except pydantic.ValidationError as e:
        raise SerializationError(_summarize(e)) from e


def _summarize(error: pydantic.ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "envelope"
        parts.append(f"{location}: {item['msg']}")
    return "Invalid job envelope: " + "; ".join(parts)
