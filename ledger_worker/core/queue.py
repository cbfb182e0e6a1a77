"""Durable FIFO job queue backed by a Redis list.

Producers ``LPUSH`` envelopes onto the left of the list and workers ``BRPOP`` from the
right, which makes the list FIFO across every job type. Dequeue is destructive: once a
worker has popped an envelope it is gone from Redis whatever happens next.
"""

from typing import Any

import redis
from pydantic import ValidationError

from ledger_worker.core.errors import QueueError
from ledger_worker.core.models import Job
from ledger_worker.core.settings import Settings
from ledger_worker.core.utils import get_logger

logger = get_logger("ledger-worker.queue")


class JobQueue:
    """Push and blocking-pop of job envelopes on a single Redis list."""

    def __init__(self, client: Any, name: str = "job_queue") -> None:
        """Initialize the queue with a Redis client and the list key to use."""
        self.client = client
        self.name = name

    @classmethod
    def from_settings(cls, settings: Settings) -> "JobQueue":
        """Build a queue from the configured Redis URL."""
        return cls(redis.Redis.from_url(settings.redis_url), settings.queue_name)

    def ping(self) -> None:
        """Check that Redis is reachable."""
        try:
            self.client.ping()
        except redis.RedisError as exc:
            msg = f"Failed to connect to Redis: {exc}"
            raise QueueError(msg) from exc

    def push(self, job: Job) -> str:
        """Push an already-built envelope and return its id."""
        try:
            self.client.lpush(self.name, job.model_dump_json())
        except redis.RedisError as exc:
            msg = f"Failed to enqueue job {job.id}: {exc}"
            raise QueueError(msg) from exc
        logger.info(f"Enqueued job: {job.id} (Type: {job.type})")
        return job.id

    def enqueue(self, job_type: str, data: Any = None) -> str:
        """Build an envelope for ``job_type`` carrying ``data`` and push it."""
        return self.push(Job(type=job_type, data=data))

    def dequeue(self, timeout: int = 5) -> Job | None:
        """Pop the oldest envelope, waiting up to ``timeout`` seconds; ``None`` on timeout."""
        try:
            result = self.client.brpop([self.name], timeout=timeout)
        except redis.RedisError as exc:
            msg = f"Failed to dequeue job: {exc}"
            raise QueueError(msg) from exc
        if result is None:
            return None
        _, payload = result
        try:
            return Job.model_validate_json(payload)
        except ValidationError as exc:
            msg = f"Failed to decode job envelope: {exc}"
            raise QueueError(msg) from exc

    def depth(self) -> int:
        """Return the number of envelopes waiting."""
        try:
            return int(self.client.llen(self.name))
        except redis.RedisError as exc:
            msg = f"Failed to read queue length: {exc}"
            raise QueueError(msg) from exc
