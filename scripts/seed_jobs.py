"""
Seed script — submits a variety of sample jobs for demo purposes.

Usage:
    python -m scripts.seed_jobs [base_url]

This creates:
- 1 data validation job (one error, one warning, one info finding)
- 3 notifications over different channels, one of them delayed by 30s
- 1 FHIR sync against an unreachable server (demos NetworkError retries
  and, once attempts run out, the dead-letter queue)

Run this against a worker with monitoring enabled (default port 9090).
"""

import sys
import uuid

import httpx

BASE_URL = "http://localhost:9090"


def seed(base_url: str = BASE_URL):
    client = httpx.Client(base_url=base_url, timeout=10.0)
    patient_id = str(uuid.uuid4())
    recipient_id = str(uuid.uuid4())

    submissions = [
        {
            "job": {
                "type": "DataValidation",
                "patient_id": patient_id,
                "validation_type": "BusinessRules",
                "auto_fix": False,
                "rules": [
                    {"name": "dob_required", "description": "Date of birth is required",
                     "rule_type": "required", "expression": "birthDate != null", "severity": "Error"},
                    {"name": "phone_format", "description": "Phone number should be E.164",
                     "rule_type": "format", "expression": "telecom.phone ~ E164", "severity": "Warning"},
                    {"name": "preferred_language", "description": "Preferred language recorded",
                     "rule_type": "presence", "expression": "communication != null", "severity": "Info"},
                ],
            },
        },
        {
            "job": {
                "type": "Notification",
                "recipient_id": recipient_id,
                "notification_type": "Reminder",
                "message": "Your appointment is tomorrow at 9:00",
                "channel": "Email",
                "priority": "Normal",
            },
        },
        {
            "job": {
                "type": "Notification",
                "recipient_id": recipient_id,
                "notification_type": "Alert",
                "message": "New lab results are available",
                "channel": "Sms",
                "priority": "High",
            },
        },
        {
            "job": {
                "type": "Notification",
                "recipient_id": recipient_id,
                "notification_type": "Update",
                "message": "Your care plan was updated",
                "channel": "InApp",
                "priority": "Low",
            },
            "delay_seconds": 30,
        },
        {
            "job": {
                "type": "FhirSync",
                "patient_id": patient_id,
                "resource_type": "Observation",
                "source_url": "http://localhost:1/fhir",
                "target_url": "http://localhost:2/fhir",
                "sync_direction": "Push",
            },
            "max_attempts": 2,
        },
    ]

    print(f"Submitting {len(submissions)} jobs to {base_url}...\n")

    for body in submissions:
        resp = client.post("/jobs/", json=body)
        resp.raise_for_status()
        data = resp.json()
        print(f"  [{data['status']}] {data['job_type']} (id: {data['id'][:8]}...)")

    print("\nDone! Jobs are now queued for the worker.")
    print(f"Check stats:   curl {base_url}/stats")
    print(f"Check health:  curl {base_url}/health")


if __name__ == "__main__":
    seed(sys.argv[1] if len(sys.argv) > 1 else BASE_URL)
