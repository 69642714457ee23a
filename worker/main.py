"""
Worker process entry point.

It runs these components in one process:

    1. Worker — polls the Redis due-queue and executes jobs on a thread pool
    2. Monitoring API — FastAPI served by uvicorn on monitoring.metrics_port
       (only when monitoring.enabled)
    3. The main thread — waits for Ctrl+C (SIGINT) or SIGTERM and logs a
       health line every monitoring.health_check_interval seconds

To run:
    python -m worker.main

Configuration comes from JOBS_* environment variables, .env, and jobs.toml
(see config/settings.py). An invalid configuration exits with status 1
before anything connects.
"""

import logging
import signal
import sys
import threading

import uvicorn

from api.main import create_app
from config.settings import Settings, load_settings
from jobs.errors import ConfigurationError
from jobs.registry import default_registry
from models.base import Base, build_engine, build_session_factory
from worker.monitor import JobMonitor
from worker.queue import RedisJobQueue, build_redis_client
from worker.store import SqlJobStore
from worker.worker import Worker

logger = logging.getLogger(__name__)


def build_worker(settings: Settings) -> Worker:
    """Wire a Worker to Postgres and Redis from the settings."""
    engine = build_engine(settings.database)

    # Safe to call on every start: existing tables are left alone
    logger.info("Ensuring database tables exist...")
    Base.metadata.create_all(engine)

    return Worker(
        settings.worker,
        queue=RedisJobQueue(build_redis_client(settings.redis)),
        store=SqlJobStore(build_session_factory(engine)),
        monitor=JobMonitor(),
        registry=default_registry(),
    )


def start_monitoring_server(worker: Worker, port: int) -> uvicorn.Server:
    config = uvicorn.Config(create_app(worker), host="0.0.0.0", port=port, log_level="warning")
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, name="monitoring-api", daemon=True)
    thread.start()
    logger.info(f"Monitoring API listening on port {port}")
    return server


def main():
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    worker = build_worker(settings)
    worker.start()

    server = None
    if settings.monitoring.enabled:
        server = start_monitoring_server(worker, settings.monitoring.metrics_port)

    # ── Graceful shutdown on Ctrl+C or SIGTERM ──────────────────
    shutdown_event = threading.Event()

    def shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, shutdown)
    signal.signal(signal.SIGINT, shutdown)

    logger.info("Worker process running. Press Ctrl+C to stop.")

    # Event.wait() with a timeout doubles as the health-log timer
    while not shutdown_event.wait(settings.monitoring.health_check_interval):
        health = worker.health_check()
        logger.info(
            f"Health: {health.status.value}, {health.jobs_processed} jobs processed, "
            f"{health.success_rate:.1f}% success, avg {health.average_duration_ms:.1f}ms"
        )

    worker.stop()
    if server is not None:
        server.should_exit = True

    logger.info("Worker process exited")


if __name__ == "__main__":
    main()
