"""
Health check endpoint.

The first thing to hit to verify the worker is alive. Load balancers and
container orchestrators (k8s liveness probes) poll it; anything other than
status "Running" means the poll loop is stopped or currently failing.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_worker
from worker.monitor import WorkerHealth
from worker.worker import Worker

router = APIRouter(tags=["health"])


@router.get("/health", response_model=WorkerHealth)
def health_check(worker: Worker = Depends(get_worker)) -> WorkerHealth:
    """Worker status, uptime, and throughput derived from the job monitor."""
    return worker.health_check()
