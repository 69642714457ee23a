"""
Job queue — Redis structures the worker polls.

Two keys:

    emr_jobs:due          sorted set, member = {"job_id", "envelope"} JSON,
                          score = unix time the job becomes runnable
    emr_jobs:dead_letter  list of permanently failed jobs (RPUSH, newest last)

Delays and retries are both just a future score: a job submitted with
delay_seconds=60, or requeued after a NetworkError with a 30s delay, sits in
the set until its score is <= now. fetch_due() reads the due members in
score order and claims each one with ZREM; only the caller whose ZREM
returned 1 gets the job. When the job store can't be written during an
attempt, the executor puts the claimed job back with DatabaseError's delay,
and the next delivery picks up from whatever state the row was left in.
Delivery is at-least-once.

The dead-letter list holds jobs that failed with a non-retryable error or
ran out of attempts. Someone reviews it and either fixes the root cause
and resubmits, or acknowledges the failure.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from redis import Redis

from config.settings import RedisSettings
from models.metadata import JobMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedJob:
    job_id: UUID
    envelope: dict
    due_at: float


class AbstractJobQueue(ABC):

    @abstractmethod
    def enqueue(self, job_id: UUID, envelope: dict, delay_seconds: float = 0) -> None:
        ...

    @abstractmethod
    def fetch_due(self, limit: int) -> list[QueuedJob]:
        """Claim up to `limit` runnable jobs, earliest due first."""
        ...

    @abstractmethod
    def dead_letter(self, metadata: JobMetadata, envelope: dict) -> None:
        ...

    @abstractmethod
    def dead_letters(self) -> list[dict]:
        ...

    @abstractmethod
    def depth(self) -> int:
        """Jobs waiting in the queue, due or not."""
        ...


def build_redis_client(cfg: RedisSettings) -> Redis:
    return Redis.from_url(
        cfg.url,
        max_connections=cfg.max_connections,
        socket_connect_timeout=cfg.connection_timeout,
    )


class RedisJobQueue(AbstractJobQueue):

    DUE_KEY = "emr_jobs:due"
    DLQ_KEY = "emr_jobs:dead_letter"

    def __init__(self, redis_client: Redis):
        self._redis = redis_client

    def enqueue(self, job_id: UUID, envelope: dict, delay_seconds: float = 0) -> None:
        member = json.dumps({"job_id": str(job_id), "envelope": envelope}, sort_keys=True)
        due_at = time.time() + max(delay_seconds, 0)
        self._redis.zadd(self.DUE_KEY, {member: due_at})
        logger.debug(f"Enqueued job {job_id} due in {max(delay_seconds, 0):.1f}s")

    def fetch_due(self, limit: int) -> list[QueuedJob]:
        if limit <= 0:
            return []

        candidates = self._redis.zrangebyscore(
            self.DUE_KEY, "-inf", time.time(), start=0, num=limit, withscores=True
        )
        claimed: list[QueuedJob] = []
        for member, score in candidates:
            # Another worker may have claimed it between ZRANGEBYSCORE and here
            if self._redis.zrem(self.DUE_KEY, member) != 1:
                continue
            entry = json.loads(member)
            claimed.append(QueuedJob(
                job_id=UUID(entry["job_id"]),
                envelope=entry["envelope"],
                due_at=score,
            ))
        return claimed

    def dead_letter(self, metadata: JobMetadata, envelope: dict) -> None:
        entry = json.dumps({
            "job_id": str(metadata.id),
            "job_type": metadata.job_type,
            "error": metadata.last_error,
            "attempts": metadata.attempts,
            "max_attempts": metadata.max_attempts,
            "envelope": envelope,
            "failed_at": datetime.now(timezone.utc).isoformat(),
        })
        self._redis.rpush(self.DLQ_KEY, entry)

    def dead_letters(self) -> list[dict]:
        return [json.loads(raw) for raw in self._redis.lrange(self.DLQ_KEY, 0, -1)]

    def depth(self) -> int:
        return self._redis.zcard(self.DUE_KEY)
