"""
app/services/ingestion_coordinator.py

Runs one queued ingestion job end to end.

Lifecycle per job:

    1. Load the tracker named by the envelope (absent -> error event, raise).
    2. queued -> processing; announce the job id, a start log line, history.
    3. Verify the staged file exists, then count rows (first full pass).
    4. Stream the file through the batch processor (second full pass); after
       every flush the tracker is updated and progress is broadcast.
    5. processing -> completed with final counters; broadcast the summary and
       hand it to the notifier (best-effort).

Any exception after the claim rolls back, broadcasts an ``error`` event, marks
the tracker ``failed`` and is re-raised so the queue records the failure.

All tracker mutation goes through ``update_tracker``, which always
re-broadcasts the owner's history afterwards.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from app.domain.ingestion import BatchProgress, IngestionEvent, IngestionSummary, JobEnvelope
from app.schemas.ingestion_events import ProgressPayload, RowErrorPayload, SummaryPayload
from app.services.batch_processor import BatchProcessor, get_batch_processor
from app.services.broadcaster import Broadcaster, get_broadcaster
from app.services.csv_stream import count_rows
from app.services.errors import IngestionError, SourceFileMissingError, TrackerNotFoundError
from app.services.ingestion_history import load_history
from app.services.notifier import SummaryNotifier, get_summary_notifier
from db.models.ingestion_job import IngestionJob, IngestionJobStatus
from db.repositories.ingestion_job_repository import IngestionJobRepository

logger = logging.getLogger(__name__)

# Also published under the job id so a per-job view can follow one upload.
_JOB_SCOPED_EVENTS = frozenset(
    {
        IngestionEvent.LOG,
        IngestionEvent.PROGRESS,
        IngestionEvent.SUMMARY,
        IngestionEvent.ERROR,
    }
)


class _JobChannel:
    """
    Batch processor listener bound to one job.
    """

    def __init__(self, coordinator: IngestionCoordinator, db: Session, job: IngestionJob) -> None:
        self._coordinator = coordinator
        self._db = db
        self._job = job

    def batch_flushed(self, progress: BatchProgress) -> None:
        self._coordinator.update_tracker(self._db, self._job, **progress.tracker_fields())

    def progress(self, percent: int) -> None:
        payload = ProgressPayload(process_id=str(self._job.id), percent=percent)
        self._coordinator.publish(self._job, IngestionEvent.PROGRESS, payload.to_wire())

    def log(self, message: str) -> None:
        self._coordinator.publish(self._job, IngestionEvent.LOG, message)


class IngestionCoordinator:
    def __init__(
        self,
        *,
        broadcaster: Broadcaster,
        notifier: SummaryNotifier | None = None,
        processor: BatchProcessor | None = None,
        session_factory: sessionmaker[Session] | None = None,
        remove_file: Callable[[str], None] = os.remove,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._broadcaster = broadcaster
        self._notifier = notifier or get_summary_notifier()
        self._processor = processor or get_batch_processor()
        self._remove_file = remove_file

    def handle_job(self, envelope: JobEnvelope) -> IngestionSummary | None:
        """
        Process one envelope; returns None when the tracker is already terminal.
        """

        job_id = _parse_job_id(envelope.job_id)
        with self._session_factory() as db:
            repository = IngestionJobRepository(db)
            job = repository.get_job(job_id) if job_id is not None else None
            if job is None:
                error = TrackerNotFoundError(envelope.job_id)
                self._broadcaster.publish(envelope.owner_identity, IngestionEvent.ERROR, error.user_message)
                raise error

            if job.is_terminal:
                logger.warning(
                    "Skipping redelivered ingestion job id=%s status=%s",
                    job.id,
                    job.status,
                )
                return None
            if job.status == IngestionJobStatus.PROCESSING:
                logger.warning("Re-running ingestion job left in processing id=%s", job.id)

            try:
                summary = self._run(db, job, envelope.source_path)
            except Exception as exc:
                self._fail_job(db, job, envelope.source_path, exc)
                raise

        self._notify(job, summary)
        return summary

    def update_tracker(self, db: Session, job: IngestionJob, **fields: Any) -> IngestionJob:
        """
        Persist tracker fields, then re-broadcast the owner's history.
        """

        IngestionJobRepository(db).apply_update(job, fields)
        db.commit()
        self._broadcast_history(db, job.owner_identity)
        return job

    def publish(self, job: IngestionJob, event: str, payload: Any) -> None:
        self._publish_to(job.owner_identity, job.id, event, payload)

    def _publish_to(self, owner_identity: str, job_id: uuid.UUID, event: str, payload: Any) -> None:
        self._broadcaster.publish(owner_identity, event, payload)
        if event in _JOB_SCOPED_EVENTS:
            self._broadcaster.publish(str(job_id), event, payload)

    def _run(self, db: Session, job: IngestionJob, source_path: str) -> IngestionSummary:
        self.update_tracker(db, job, status=IngestionJobStatus.PROCESSING)
        self.publish(job, IngestionEvent.FILE_PROCESS_ID, str(job.id))
        self.publish(job, IngestionEvent.LOG, f"Job {job.id} started")
        logger.info("Ingestion job started id=%s owner=%s path=%s", job.id, job.owner_identity, source_path)

        if not Path(source_path).is_file():
            raise SourceFileMissingError(source_path)

        self.publish(job, IngestionEvent.LOG, "Counting rows...")
        total = count_rows(source_path)
        self.publish(job, IngestionEvent.LOG, f"Total rows: {total}")
        self.update_tracker(db, job, total=total)

        summary = self._processor.process(source_path, job.id, total, _JobChannel(self, db, job))

        self.update_tracker(
            db,
            job,
            status=IngestionJobStatus.COMPLETED,
            total=summary.total,
            processed=summary.total,
            success=summary.success,
            failed=summary.failed,
            errors=[error.to_dict() for error in summary.errors],
        )
        self.publish(
            job,
            IngestionEvent.SUMMARY,
            SummaryPayload(
                total=summary.total,
                success=summary.success,
                failed=summary.failed,
                errors=[RowErrorPayload(row=error.row, message=error.message) for error in summary.errors],
                process_id=str(job.id),
            ).to_wire(),
        )
        logger.info(
            "Ingestion job completed id=%s total=%s success=%s failed=%s",
            job.id,
            summary.total,
            summary.success,
            summary.failed,
        )
        return summary

    def _fail_job(self, db: Session, job: IngestionJob, source_path: str, exc: Exception) -> None:
        # Read before rollback expires the instance.
        job_id = job.id
        owner_identity = job.owner_identity
        logger.exception("Ingestion job failed id=%s error=%s: %s", job_id, type(exc).__name__, exc)
        db.rollback()

        message = exc.user_message if isinstance(exc, IngestionError) else "Processing failed"
        self._publish_to(owner_identity, job_id, IngestionEvent.ERROR, message)

        try:
            db.refresh(job)
            if job.status == IngestionJobStatus.PROCESSING:
                self.update_tracker(db, job, status=IngestionJobStatus.FAILED)
            else:
                logger.error(
                    "Ingestion job not marked failed id=%s status=%s",
                    job_id,
                    job.status,
                )
        except Exception:
            db.rollback()
            logger.exception("Failed to persist failed ingestion job state id=%s", job_id)

        self._release_quietly(source_path)

    def _broadcast_history(self, db: Session, owner_identity: str) -> None:
        history = load_history(db, owner_identity)
        self._broadcaster.publish(owner_identity, IngestionEvent.HISTORY, history.to_wire())

    def _notify(self, job: IngestionJob, summary: IngestionSummary) -> None:
        # Best-effort: the job is already completed.
        try:
            self._notifier.notify(job.owner_identity, summary, str(job.id))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Summary notification failed job=%s owner=%s: %s", job.id, job.owner_identity, exc)

    def _release_quietly(self, source_path: str) -> None:
        if not os.path.exists(source_path):
            return
        try:
            self._remove_file(source_path)
        except OSError as exc:
            logger.warning("Failed to delete staged file path=%s: %s", source_path, exc)


def _parse_job_id(raw: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


@lru_cache(maxsize=1)
def get_ingestion_coordinator() -> IngestionCoordinator:
    return IngestionCoordinator(broadcaster=get_broadcaster())
