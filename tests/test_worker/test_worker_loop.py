"""
Tests for the Worker — submission, polling, shutdown, and administration.

Most tests drive poll_once() directly and then call stop(), which waits for
the thread pool to drain, so assertions never race the worker threads.
"""

import threading
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from jobs.base import AbstractJobHandler
from jobs.errors import SerializationError
from jobs.result import JobExecutionResult
from models.base import build_session_factory
from models.enums import JobStatus, WorkerStatus
from models.metadata import InvalidTransitionError
from worker.queue import RedisJobQueue
from worker.store import SqlJobStore
from worker.worker import Worker


def _notification(channel="Email"):
    return {
        "type": "Notification",
        "recipient_id": str(uuid.uuid4()),
        "notification_type": "Reminder",
        "message": "Your appointment is tomorrow at 9:00",
        "channel": channel,
        "priority": "Normal",
    }


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_email_notification_end_to_end(worker):
    metadata = worker.submit(_notification("Email"))
    assert metadata.status == JobStatus.PENDING

    assert worker.poll_once() == 1
    worker.stop()

    job = worker.get_job(metadata.id)
    assert job.status == JobStatus.COMPLETED
    assert job.attempts == 1
    result = worker.get_result(metadata.id)
    assert result["data"]["channel"] == "Email"
    assert result["data"]["delivered_at"]
    assert worker.get_stats().total_jobs == 1


def test_submit_uses_configured_max_attempts(worker, worker_settings):
    assert worker.submit(_notification()).max_attempts == worker_settings.max_retries
    assert worker.submit(_notification(), max_attempts=7).max_attempts == 7


def test_submit_rejects_bad_envelope(worker, queue):
    with pytest.raises(SerializationError):
        worker.submit({"type": "Notification", "channel": "Email"})
    assert queue.depth() == 0


def test_delayed_submission_is_not_polled_early(worker, queue):
    worker.submit(_notification(), delay_seconds=60)
    assert worker.poll_once() == 0
    assert queue.depth() == 1


def test_poll_takes_no_more_than_free_slots(worker, queue, worker_settings):
    for _ in range(worker_settings.max_workers + 1):
        worker.submit(_notification("InApp"))

    assert worker.poll_once() == worker_settings.max_workers
    assert queue.depth() == 1


def test_background_loop_processes_jobs(worker):
    worker.start()
    assert worker.status == WorkerStatus.RUNNING

    metadata = worker.submit(_notification("Push"))
    assert _wait_for(lambda: worker.get_job(metadata.id).status == JobStatus.COMPLETED)

    worker.stop()
    assert worker.status == WorkerStatus.STOPPED
    assert worker.in_flight == 0


def test_stop_is_idempotent(worker):
    worker.start()
    worker.stop()
    worker.stop()
    assert worker.status == WorkerStatus.STOPPED


def test_poll_errors_do_not_stop_the_loop(worker_settings, fake_redis, store, monitor, registry):
    class FlakyQueue(RedisJobQueue):
        failures = 3

        def fetch_due(self, limit):
            if self.failures > 0:
                self.failures -= 1
                raise RedisConnectionError("redis unavailable")
            return super().fetch_due(limit)

    worker = Worker(worker_settings, queue=FlakyQueue(fake_redis), store=store, monitor=monitor, registry=registry)
    metadata = worker.submit(_notification("Sms"))
    worker.start()
    try:
        assert _wait_for(lambda: worker.get_job(metadata.id).status == JobStatus.COMPLETED)
        assert _wait_for(lambda: worker.status == WorkerStatus.RUNNING)
    finally:
        worker.stop()


def test_cancel_pending_job_is_never_run(worker):
    metadata = worker.submit(_notification())
    cancelled = worker.cancel(metadata.id)
    assert cancelled.status == JobStatus.CANCELLED

    worker.poll_once()
    worker.stop()

    assert worker.get_job(metadata.id).status == JobStatus.CANCELLED
    assert worker.get_stats().total_jobs == 0


def test_cancel_unknown_job(worker):
    assert worker.cancel(uuid.uuid4()) is None


def test_cancel_completed_job_is_rejected(worker):
    metadata = worker.submit(_notification())
    worker.poll_once()
    worker.stop()
    with pytest.raises(InvalidTransitionError):
        worker.cancel(metadata.id)


def test_health_before_start(worker):
    health = worker.health_check()
    assert health.status == WorkerStatus.STARTING
    assert health.uptime_seconds == 0
    assert health.success_rate == 0.0


def test_health_after_jobs(worker):
    worker.submit(_notification())
    worker.poll_once()
    worker.stop()

    health = worker.health_check()
    assert health.jobs_processed == 1
    assert health.success_rate == 100.0


def test_reset_stats(worker, monitor):
    monitor.record(50, True)
    stats = worker.reset_stats()
    assert stats.total_jobs == 0
    assert worker.get_stats().total_jobs == 0


def _scheduled_notification(scheduled_for):
    return {**_notification("Sms"), "scheduled_for": scheduled_for.isoformat()}


def _due_in(fake_redis):
    (_, score), = fake_redis.zrange(RedisJobQueue.DUE_KEY, 0, -1, withscores=True)
    return score - time.time()


def test_scheduled_notification_is_held_until_due(worker, queue, fake_redis):
    scheduled_for = datetime.now(timezone.utc) + timedelta(hours=1)
    metadata = worker.submit(_scheduled_notification(scheduled_for), delay_seconds=60)

    assert worker.poll_once() == 0
    assert queue.depth() == 1
    assert 3590 < _due_in(fake_redis) <= 3600
    assert worker.get_job(metadata.id).status == JobStatus.PENDING
    assert worker.dead_letters() == []


def test_longer_delay_wins_over_schedule(worker, fake_redis):
    scheduled_for = datetime.now(timezone.utc) + timedelta(minutes=1)
    worker.submit(_scheduled_notification(scheduled_for), delay_seconds=600)
    assert 590 < _due_in(fake_redis) <= 600


def test_past_schedule_runs_immediately(worker):
    scheduled_for = datetime.now(timezone.utc) - timedelta(minutes=5)
    metadata = worker.submit(_scheduled_notification(scheduled_for))

    assert worker.poll_once() == 1
    worker.stop()
    assert worker.get_job(metadata.id).status == JobStatus.COMPLETED


ANALYTICS = {
    "type": "Analytics",
    "analytics_type": "Usage",
    "date_range": {"start": "2026-01-01T00:00:00Z", "end": "2026-01-31T00:00:00Z"},
    "dimensions": ["department"],
    "metrics": ["visits"],
    "output_location": "/tmp/analytics",
}


class _BlockingHandler(AbstractJobHandler):
    """Blocks inside execute() until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def execute(self, payload, context):
        self.entered.set()
        self.release.wait(5)
        return JobExecutionResult.succeeded("analytics done")

    @property
    def name(self):
        return "blocking"

    @property
    def job_type(self):
        return "Analytics"


def test_stop_waits_for_in_flight_job(worker_settings, queue, store, monitor, registry):
    handler = _BlockingHandler()
    registry.register(handler)
    worker = Worker(worker_settings, queue=queue, store=store, monitor=monitor, registry=registry)
    running = worker.submit(ANALYTICS)
    worker.start()
    assert handler.entered.wait(5)

    stopper = threading.Thread(target=worker.stop)
    stopper.start()
    try:
        # Poll thread gone: nothing submitted from here on gets picked up
        assert _wait_for(lambda: not worker._thread.is_alive())
        late = worker.submit(_notification("InApp"))
        time.sleep(0.1)

        assert stopper.is_alive()
        assert worker.status == WorkerStatus.STOPPING
        assert worker.get_job(running.id).status == JobStatus.RUNNING
    finally:
        handler.release.set()
        stopper.join(5)

    assert not stopper.is_alive()
    assert worker.status == WorkerStatus.STOPPED
    assert worker.get_job(running.id).status == JobStatus.COMPLETED
    assert worker.get_stats().total_jobs == 1
    assert worker.get_job(late.id).status == JobStatus.PENDING
    assert queue.depth() == 1


def test_concurrent_stop_calls_all_return(worker):
    worker.start()
    stoppers = [threading.Thread(target=worker.stop) for _ in range(4)]
    for t in stoppers:
        t.start()
    for t in stoppers:
        t.join(5)

    assert not any(t.is_alive() for t in stoppers)
    assert worker.status == WorkerStatus.STOPPED


def test_cancel_loses_to_a_job_that_already_started(worker_settings, engine, queue, monitor, registry):
    class StartAfterLoad(SqlJobStore):
        """Lets a worker thread start the job between cancel()'s read and its write."""

        def __init__(self, session_factory):
            super().__init__(session_factory)
            self.armed = False

        def get(self, job_id):
            loaded = super().get(job_id)
            if self.armed:
                self.armed = False
                other = super().get(job_id)
                other.start()
                super().save(other)
            return loaded

    store = StartAfterLoad(build_session_factory(engine))
    worker = Worker(worker_settings, queue=queue, store=store, monitor=monitor, registry=registry)
    metadata = worker.submit(_notification())

    store.armed = True
    with pytest.raises(InvalidTransitionError) as exc_info:
        worker.cancel(metadata.id)

    assert exc_info.value.status == JobStatus.RUNNING
    assert store.get(metadata.id).status == JobStatus.RUNNING
    worker.stop()
