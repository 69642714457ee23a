"""
Shared enumerations used across the entire project.

Using Python enums (inheriting from str) means:
- They serialize to JSON automatically ("Email", not "NotificationChannel.EMAIL")
- They work as SQLAlchemy column values
- They work as FastAPI query parameters and pydantic fields
- Typos become immediate errors instead of silent bugs

The values are the exact strings used on the wire. Job envelopes are produced
by other services of the EMR platform, so the casing ("FhirSync", "InApp")
must not change.
"""

import enum


class JobStatus(str, enum.Enum):
    PENDING = "Pending"        # accepted, waiting in the queue
    RUNNING = "Running"        # a worker thread is executing it
    COMPLETED = "Completed"    # handler returned a successful result
    FAILED = "Failed"          # last attempt raised; terminal once retries are used up
    CANCELLED = "Cancelled"    # withdrawn before it ran again
    RETRYING = "Retrying"      # failed with a retryable error, re-queued with a delay


class JobType(str, enum.Enum):
    """Taxonomy tags — the value of the "type" discriminator in a job envelope."""

    FHIR_SYNC = "FhirSync"
    DATA_VALIDATION = "DataValidation"
    AUDIT_REPORT = "AuditReport"
    NOTIFICATION = "Notification"
    DATA_EXPORT = "DataExport"
    DATA_IMPORT = "DataImport"
    DATA_CLEANUP = "DataCleanup"
    ANALYTICS = "Analytics"


class WorkerStatus(str, enum.Enum):
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPING = "Stopping"
    STOPPED = "Stopped"
    ERROR = "Error"


# ── Payload field enums ─────────────────────────────────────────


class SyncDirection(str, enum.Enum):
    PULL = "Pull"
    PUSH = "Push"
    BIDIRECTIONAL = "Bidirectional"


class ValidationType(str, enum.Enum):
    SCHEMA = "Schema"
    BUSINESS_RULES = "BusinessRules"
    COMPLETENESS = "Completeness"
    CONSISTENCY = "Consistency"
    ACCURACY = "Accuracy"


class ValidationSeverity(str, enum.Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"
    CRITICAL = "Critical"


class AuditReportType(str, enum.Enum):
    ACCESS_LOG = "AccessLog"
    DATA_CHANGES = "DataChanges"
    USER_ACTIVITY = "UserActivity"
    SECURITY_EVENTS = "SecurityEvents"
    COMPLIANCE_REPORT = "ComplianceReport"


class OutputFormat(str, enum.Enum):
    JSON = "Json"
    XML = "Xml"
    CSV = "Csv"
    PDF = "Pdf"
    HTML = "Html"


class NotificationType(str, enum.Enum):
    ALERT = "Alert"
    REMINDER = "Reminder"
    UPDATE = "Update"
    WARNING = "Warning"
    ERROR = "Error"


class NotificationChannel(str, enum.Enum):
    EMAIL = "Email"
    SMS = "Sms"
    PUSH = "Push"
    IN_APP = "InApp"


class Priority(str, enum.Enum):
    LOW = "Low"
    NORMAL = "Normal"
    HIGH = "High"
    CRITICAL = "Critical"


class ExportFormat(str, enum.Enum):
    FHIR = "Fhir"
    HL7 = "Hl7"
    CSV = "Csv"
    JSON = "Json"
    XML = "Xml"


class ImportFormat(str, enum.Enum):
    FHIR = "Fhir"
    HL7 = "Hl7"
    CSV = "Csv"
    JSON = "Json"
    XML = "Xml"


class CleanupType(str, enum.Enum):
    LOGS = "Logs"
    TEMP_FILES = "TempFiles"
    OLD_RECORDS = "OldRecords"
    DUPLICATES = "Duplicates"
    ORPHANED = "Orphaned"


class AnalyticsType(str, enum.Enum):
    USAGE = "Usage"
    PERFORMANCE = "Performance"
    QUALITY = "Quality"
    TRENDS = "Trends"
    PREDICTIONS = "Predictions"
