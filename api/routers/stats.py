"""
Job statistics endpoints.

GET  /stats        → snapshot of the job monitor's counters
POST /stats/reset  → zero the counters (administrative), returns the fresh snapshot
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_worker
from worker.monitor import JobStats
from worker.worker import Worker

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=JobStats)
def get_stats(worker: Worker = Depends(get_worker)) -> JobStats:
    return worker.get_stats()


@router.post("/reset", response_model=JobStats)
def reset_stats(worker: Worker = Depends(get_worker)) -> JobStats:
    return worker.reset_stats()
