"""
FHIR sync job — copies one patient's resources between two FHIR servers.

Example payload:
    {
        "type": "FhirSync",
        "patient_id": "0b9e...",
        "resource_type": "Observation",
        "source_url": "http://emr-fhir:8080/fhir",
        "target_url": "https://partner.example.org/fhir",
        "last_sync": "2026-10-18T00:00:00Z",
        "sync_direction": "Push"
    }

Directions, from the EMR's point of view (source_url is our server):
    Push          source → target
    Pull          target → source
    Bidirectional push first, then pull

Each copy is a FHIR search followed by one PUT per resource:
    GET {from}/{resource_type}?patient={id}[&_lastUpdated=gt{last_sync}]
    PUT {to}/{resource_type}/{resource.id}
Search results are Bundles; "next" links are followed until exhausted.
PUT is an update-or-create keyed by id, so a retried sync rewrites the same
resources instead of duplicating them.

HTTP failures are mapped onto the job error taxonomy so the worker can
decide on a retry:
    timeout                  → JobTimeoutError      (retry after 120s)
    connection/transport     → NetworkError         (retry after 30s)
    5xx or 429               → ExternalServiceError (retry after 60s)
    other 4xx                → ProcessingError      (no retry)
    body isn't a Bundle      → SerializationError   (no retry)
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

import httpx

from jobs.base import AbstractJobHandler
from jobs.context import JobContext
from jobs.errors import (
    ExternalServiceError,
    JobTimeoutError,
    NetworkError,
    ProcessingError,
    SerializationError,
)
from jobs.payloads import FhirSyncJob
from jobs.result import JobExecutionResult
from models.enums import JobType, SyncDirection

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FhirSyncHandler(AbstractJobHandler):

    DEFAULT_TIMEOUT = 30.0

    def __init__(self, client: Optional[httpx.Client] = None):
        # An injected client is shared and owned by the caller; otherwise
        # each execution opens and closes its own.
        self._client = client

    def execute(self, payload: FhirSyncJob, context: JobContext) -> JobExecutionResult:
        timeout = context.timeout_seconds or self.DEFAULT_TIMEOUT
        logger.info(
            f"Job {context.job_id}: syncing {payload.resource_type} for patient "
            f"{payload.patient_id} ({payload.sync_direction.value})"
        )

        pushed = 0
        pulled = 0
        with self._client_scope() as client:
            if payload.sync_direction in (SyncDirection.PUSH, SyncDirection.BIDIRECTIONAL):
                pushed = self._copy(client, payload.source_url, payload.target_url, payload, timeout)
            if payload.sync_direction in (SyncDirection.PULL, SyncDirection.BIDIRECTIONAL):
                pulled = self._copy(client, payload.target_url, payload.source_url, payload, timeout)

        data = {
            "patient_id": str(payload.patient_id),
            "resource_type": payload.resource_type,
            "sync_direction": payload.sync_direction.value,
            "resources_pushed": pushed,
            "resources_pulled": pulled,
            "synced_at": datetime.now(timezone.utc).isoformat(),
        }
        return (
            JobExecutionResult.succeeded_with_data(
                f"Synchronized {pushed + pulled} {payload.resource_type} resources",
                data,
            )
            .with_metric("resources_pushed", pushed)
            .with_metric("resources_pulled", pulled)
        )

    @contextmanager
    def _client_scope(self) -> Iterator[httpx.Client]:
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(headers={"Accept": FHIR_JSON}) as client:
            yield client

    def _copy(
        self,
        client: httpx.Client,
        from_base: str,
        to_base: str,
        payload: FhirSyncJob,
        timeout: float,
    ) -> int:
        resources = self._search(client, from_base, payload, timeout)
        for resource in resources:
            url = f"{to_base.rstrip('/')}/{payload.resource_type}/{resource['id']}"
            self._request(
                client, "PUT", url,
                json=resource,
                headers={"Content-Type": FHIR_JSON, "Accept": FHIR_JSON},
                timeout=timeout,
            )
        logger.debug(f"Copied {len(resources)} {payload.resource_type} from {from_base} to {to_base}")
        return len(resources)

    def _search(
        self,
        client: httpx.Client,
        base: str,
        payload: FhirSyncJob,
        timeout: float,
    ) -> list[dict]:
        params: Optional[dict] = {"patient": str(payload.patient_id)}
        if payload.last_sync is not None:
            params["_lastUpdated"] = f"gt{payload.last_sync.isoformat()}"

        url: Optional[str] = f"{base.rstrip('/')}/{payload.resource_type}"
        resources: list[dict] = []
        while url:
            response = self._request(client, "GET", url, params=params, timeout=timeout)
            bundle = self._parse_bundle(response)

            for entry in bundle.get("entry", []):
                resource = entry.get("resource") or {}
                # Searches may carry _include'd resources of other types
                if resource.get("resourceType") != payload.resource_type:
                    continue
                if not resource.get("id"):
                    logger.warning(f"Skipping {payload.resource_type} without id from {base}")
                    continue
                resources.append(resource)

            url = next(
                (link.get("url") for link in bundle.get("link", []) if link.get("relation") == "next"),
                None,
            )
            params = None  # next links already carry the query
        return resources

    @staticmethod
    def _parse_bundle(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            raise SerializationError(f"{response.request.url} did not return JSON") from e
        if not isinstance(body, dict) or body.get("resourceType") != "Bundle":
            raise SerializationError(f"{response.request.url} did not return a FHIR Bundle")
        return body

    @staticmethod
    def _request(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise JobTimeoutError(f"{method} {url} timed out") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status >= 500 or status == 429:
                raise ExternalServiceError(f"{method} {url} returned {status}") from e
            raise ProcessingError(f"{method} {url} returned {status}") from e
        return response

    @property
    def name(self) -> str:
        return "fhir_sync"

    @property
    def job_type(self) -> str:
        return JobType.FHIR_SYNC.value
