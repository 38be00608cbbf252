"""
app/services/job_queue.py

Durable ingestion work queue backed by Redis + RQ.

The dedupe key doubles as the RQ job id. Enqueueing a key that is still
waiting or running is a no-op, which makes retries of the upload step safe.
Delivery is at-least-once: every job carries an RQ retry policy, so a job
abandoned by a dead worker (or one that raised) is re-queued by the started
registry cleanup. The coordinator re-runs a tracker still ``processing`` and
skips terminal ones.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import Protocol

from redis import Redis
from redis.exceptions import RedisError
from rq import Queue, Retry
from rq.job import JobStatus

from app.config import get_queue_settings
from app.domain.ingestion import EnqueueResult, JobEnvelope
from app.services.errors import JobQueueError

logger = logging.getLogger(__name__)

JOB_HANDLER = "app.worker.process_ingestion_job"

_IN_FLIGHT_STATUSES = frozenset(
    {
        JobStatus.QUEUED,
        JobStatus.STARTED,
        JobStatus.DEFERRED,
        JobStatus.SCHEDULED,
    }
)


def dedupe_key_for(job_id: uuid.UUID | str) -> str:
    return f"ingest-{job_id}"


def build_retry_policy(max_retries: int, backoff_seconds: int) -> Retry | None:
    """
    Exponential backoff starting at ``backoff_seconds``; no intervals when 0.
    """

    if max_retries <= 0:
        return None
    if backoff_seconds <= 0:
        return Retry(max=max_retries)
    return Retry(max=max_retries, interval=[backoff_seconds * (2**idx) for idx in range(max_retries)])


class JobQueue(Protocol):
    def enqueue(self, envelope: JobEnvelope, *, dedupe_key: str) -> EnqueueResult:
        ...


class RQJobQueue:
    def __init__(
        self,
        connection: Redis,
        *,
        queue_name: str = "ingestion",
        job_timeout_seconds: int = 3600,
        max_retries: int = 3,
        retry_backoff_seconds: int = 0,
    ) -> None:
        self._connection = connection
        self._queue = Queue(queue_name, connection=connection)
        self._job_timeout_seconds = job_timeout_seconds
        self._retry = build_retry_policy(max_retries, retry_backoff_seconds)

    @property
    def queue(self) -> Queue:
        return self._queue

    def enqueue(self, envelope: JobEnvelope, *, dedupe_key: str) -> EnqueueResult:
        try:
            existing = self._queue.fetch_job(dedupe_key)
            if existing is not None and existing.get_status(refresh=True) in _IN_FLIGHT_STATUSES:
                logger.info(
                    "Ingestion job already queued dedupe_key=%s job_id=%s",
                    dedupe_key,
                    envelope.job_id,
                )
                return EnqueueResult(dedupe_key=dedupe_key, accepted=False)

            self._queue.enqueue(
                JOB_HANDLER,
                envelope.to_dict(),
                job_id=dedupe_key,
                job_timeout=self._job_timeout_seconds,
                retry=self._retry,
                description=f"ingest {envelope.job_id} for {envelope.owner_identity}",
            )
        except RedisError as exc:
            raise JobQueueError(f"Failed to enqueue ingestion job {envelope.job_id}.") from exc

        logger.info(
            "Ingestion job enqueued dedupe_key=%s job_id=%s queue=%s",
            dedupe_key,
            envelope.job_id,
            self._queue.name,
        )
        return EnqueueResult(dedupe_key=dedupe_key, accepted=True)


@lru_cache(maxsize=1)
def get_job_queue() -> RQJobQueue:
    settings = get_queue_settings()
    return RQJobQueue(
        Redis.from_url(settings.redis_url),
        queue_name=settings.queue_name,
        job_timeout_seconds=settings.job_timeout_seconds,
        max_retries=settings.max_retries,
        retry_backoff_seconds=settings.retry_backoff_seconds,
    )
