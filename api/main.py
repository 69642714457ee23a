"""
FastAPI application factory for the worker's monitoring API.

This file:
1. Creates the FastAPI app around an already-built Worker
2. Registers all routers (health, stats, jobs)
3. Logs startup/shutdown through the lifespan hook

The app does not own the Worker: worker/main.py builds the Worker, starts
it, and serves this app with uvicorn on monitoring.metrics_port in a
background thread of the same process. Stopping the Worker stays the
entry point's responsibility.

The `lifespan` context manager is FastAPI's way of handling startup/shutdown.
It replaces the older @app.on_event("startup") pattern.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routers import health, jobs, stats
from worker.worker import Worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Monitoring API ready")
    yield
    logger.info("Monitoring API shut down")


def create_app(worker: Worker) -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    app = FastAPI(
        title="EMR Jobs",
        description="Health, statistics, and job submission for the EMR background job worker",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.worker = worker

    # Register routers; each one adds its endpoints to the app
    app.include_router(health.router)
    app.include_router(stats.router)
    app.include_router(jobs.router)

    return app
