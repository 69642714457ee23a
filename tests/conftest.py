"""
Shared test fixtures.

These replace real infrastructure with lightweight in-memory alternatives:
- PostgreSQL → SQLite in a per-test temp file (each worker thread gets its
  own pooled connection, SQLite's file locking serializes the writes)
- Redis → fakeredis (pure Python Redis mock)
- HTTP server → httpx.AsyncClient with ASGI transport (no network)
- Notification channels → zero latency

This means tests:
- Run without Docker
- Run in milliseconds (no network)
- Are fully isolated (each test gets a fresh database and Redis)
"""

import fakeredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine

from api.main import create_app
from config.settings import WorkerSettings
from jobs.registry import default_registry
from models.base import Base, build_session_factory
from models.enums import NotificationChannel
from worker.monitor import JobMonitor
from worker.queue import RedisJobQueue
from worker.store import SqlJobStore
from worker.worker import Worker

INSTANT_DELIVERY = {channel: 0.0 for channel in NotificationChannel}


@pytest.fixture
def engine(tmp_path):
    """Create a fresh database for each test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlJobStore(build_session_factory(engine))


@pytest.fixture
def fake_redis():
    """Create a fake Redis instance (in-memory, no real Redis needed)."""
    r = fakeredis.FakeRedis()
    yield r
    r.flushall()


@pytest.fixture
def queue(fake_redis):
    return RedisJobQueue(fake_redis)


@pytest.fixture
def monitor():
    return JobMonitor()


@pytest.fixture
def registry():
    return default_registry(notification_latencies=INSTANT_DELIVERY)


@pytest.fixture
def worker_settings():
    return WorkerSettings(max_workers=2, max_retries=3, retry_delay=30, job_timeout=60, poll_interval=0.01)


@pytest.fixture
def worker(worker_settings, queue, store, monitor, registry):
    """A Worker wired to SQLite and fakeredis. Not started; tests drive poll_once() or start()."""
    w = Worker(worker_settings, queue=queue, store=store, monitor=monitor, registry=registry)
    yield w
    w.stop()


@pytest_asyncio.fixture
async def client(worker):
    """
    Create a test HTTP client that talks directly to the monitoring app.

    ASGITransport means requests go directly to the app in-process,
    no HTTP server or network involved.
    """
    app = create_app(worker)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
