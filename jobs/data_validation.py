"""
Data validation job — evaluates a list of rules and reports the findings.

Example payload:
    {
        "type": "DataValidation",
        "patient_id": "0b9e...",
        "validation_type": "Schema",
        "auto_fix": false,
        "rules": [
            {"name": "name_required", "description": "Name is required",
             "rule_type": "required", "expression": "name != null",
             "severity": "Error"}
        ]
    }

Example result data:
    {
        "validation_results": ["ERROR: Name is required"],
        "errors_count": 1,
        "warnings_count": 0,
        "rules_processed": 1,
        ...
    }

Findings are NOT job failures. A run that finds ten Critical problems is
still a successful job: the validation happened and its report is in the
result. Only problems with running the validation itself raise a JobError.

Rules are evaluated in the order given. Severity decides the bucket:
Error and Critical count as errors, Warning as warnings, Info is reported
but not counted.
"""

import logging

from jobs.base import AbstractJobHandler
from jobs.context import JobContext
from jobs.payloads import DataValidationJob, ValidationRule
from jobs.result import JobExecutionResult
from models.enums import JobType, ValidationSeverity

logger = logging.getLogger(__name__)

_ERROR_SEVERITIES = (ValidationSeverity.ERROR, ValidationSeverity.CRITICAL)


class DataValidationHandler(AbstractJobHandler):

    def execute(self, payload: DataValidationJob, context: JobContext) -> JobExecutionResult:
        logger.info(
            f"Job {context.job_id}: validating patient={payload.patient_id} "
            f"type={payload.validation_type.value} rules={len(payload.rules)}"
        )

        findings: list[str] = []
        errors_count = 0
        warnings_count = 0

        for rule in payload.rules:
            findings.append(self._describe(rule))
            if rule.severity in _ERROR_SEVERITIES:
                errors_count += 1
            elif rule.severity == ValidationSeverity.WARNING:
                warnings_count += 1

        data = {
            "patient_id": str(payload.patient_id) if payload.patient_id else None,
            "validation_type": payload.validation_type.value,
            "auto_fix": payload.auto_fix,
            "validation_results": findings,
            "errors_count": errors_count,
            "warnings_count": warnings_count,
            "rules_processed": len(payload.rules),
        }

        return (
            JobExecutionResult.succeeded_with_data(
                f"Validation completed: {errors_count} errors, {warnings_count} warnings",
                data,
            )
            .with_metric("errors_count", errors_count)
            .with_metric("warnings_count", warnings_count)
            .with_metric("rules_processed", len(payload.rules))
        )

    @staticmethod
    def _describe(rule: ValidationRule) -> str:
        label = "ERROR" if rule.severity in _ERROR_SEVERITIES else rule.severity.value.upper()
        return f"{label}: {rule.description}"

    @property
    def name(self) -> str:
        return "data_validation"

    @property
    def job_type(self) -> str:
        return JobType.DATA_VALIDATION.value
