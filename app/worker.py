"""
app/worker.py

RQ worker process consuming the ingestion queue.

Run with ``python -m app.worker``. ``process_ingestion_job`` is the callable
RQ invokes for every envelope enqueued by the upload endpoint.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from redis import Redis
from rq import Worker

from app.config import get_queue_settings
from app.domain.ingestion import JobEnvelope
from app.services.ingestion_coordinator import get_ingestion_coordinator

logger = logging.getLogger(__name__)


def process_ingestion_job(envelope: dict[str, Any]) -> dict[str, Any] | None:
    """
    Handle one queued envelope; the return value is stored as the RQ job result.
    """

    job_envelope = JobEnvelope.from_dict(envelope)
    summary = get_ingestion_coordinator().handle_job(job_envelope)
    if summary is None:
        return None
    return {"total": summary.total, "success": summary.success, "failed": summary.failed}


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def main() -> None:
    _configure_logging()
    settings = get_queue_settings()
    connection = Redis.from_url(settings.redis_url)
    worker = Worker([settings.queue_name], connection=connection)
    logger.info("Ingestion worker listening queue=%s", settings.queue_name)
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    main()
