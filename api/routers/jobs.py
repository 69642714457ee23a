"""
Job endpoints.

POST   /jobs/             → Submit a job envelope (persisted, then enqueued)
GET    /jobs/dead-letter  → Jobs that failed permanently
GET    /jobs/{job_id}     → Lifecycle state and last result of one job
DELETE /jobs/{job_id}     → Cancel a job that hasn't started its current attempt

The API layer is intentionally thin: every route is one call on the Worker.
Job execution is asynchronous; POST returns the PENDING job immediately and
the caller polls GET /jobs/{id} to learn the outcome.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_worker
from api.schemas.job import JobResponse, JobSubmit
from jobs.errors import SerializationError
from models.metadata import InvalidTransitionError
from worker.worker import Worker

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.post("/", response_model=JobResponse, status_code=201)
def submit_job(
    job_in: JobSubmit,
    worker: Worker = Depends(get_worker),
) -> JobResponse:
    """Validate the envelope and accept the job as PENDING."""
    try:
        metadata = worker.submit(
            job_in.job,
            max_attempts=job_in.max_attempts,
            delay_seconds=job_in.delay_seconds,
        )
    except SerializationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    return JobResponse.model_validate(metadata.model_dump())


@router.get("/dead-letter")
def list_dead_letters(worker: Worker = Depends(get_worker)) -> list[dict]:
    return worker.dead_letters()


@router.get("/{job_id}", response_model=JobResponse)
def get_job(
    job_id: UUID,
    worker: Worker = Depends(get_worker),
) -> JobResponse:
    """Get a single job by its UUID, with the result of its last successful attempt."""
    metadata = worker.get_job(job_id)
    if metadata is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return JobResponse.model_validate({
        **metadata.model_dump(),
        "result": worker.get_result(job_id),
    })


@router.delete("/{job_id}", status_code=204)
def cancel_job(
    job_id: UUID,
    worker: Worker = Depends(get_worker),
) -> None:
    """
    Cancel a job.

    Only PENDING and RETRYING jobs can be cancelled. Once an attempt is
    RUNNING it's too late (the handler is already executing), and finished
    jobs stay as they are. The row is kept with status CANCELLED so it still
    shows up in history.
    """
    try:
        metadata = worker.cancel(job_id)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if metadata is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
