"""
Upload-side entry points: enqueue a staged file, query history and pages of
ingested records.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache
from typing import BinaryIO

from sqlalchemy.orm import Session, sessionmaker

from app.config import get_csv_ingestion_settings
from app.domain.ingestion import JobEnvelope
from app.schemas.ingestion_events import (
    HistoryPayload,
    ProcessedFileDataResponse,
    ProcessedFileSummary,
    RecordPayload,
    RowErrorPayload,
)
from app.services.errors import JobQueueError, SourceFileError
from app.services.fingerprint import fingerprint_file
from app.services.ingestion_history import load_history
from app.services.job_queue import JobQueue, dedupe_key_for, get_job_queue
from db.models.ingestion_job import IngestionJob, IngestionJobStatus
from db.repositories.errors import FileStorageError
from db.repositories.ingested_record_repository import IngestedRecordRepository
from db.repositories.ingestion_job_repository import IngestionJobRepository
from db.repositories.storage import LocalStagingStorage, StagingStorage

logger = logging.getLogger(__name__)


class IngestionIntakeService:
    """
    Creates trackers for staged uploads and hands them to the job queue.
    """

    def __init__(
        self,
        *,
        job_queue: JobQueue,
        storage: StagingStorage,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._job_queue = job_queue
        self._storage = storage

    def stage_upload(self, *, file_name: str, stream: BinaryIO) -> str:
        return self._storage.stage(file_name=file_name, stream=stream).storage_path

    def enqueue_file(self, *, source_path: str, owner_identity: str) -> IngestionJob:
        """
        Create (or reuse) a queued tracker for ``source_path`` and enqueue it.

        A queued job of the same owner with identical bytes is reused; its
        envelope is offered to the queue again under the same dedupe key,
        which is a no-op while the first offer is still pending.

        If the queue rejects a newly created tracker, the tracker is stopped
        and the staged file removed before the error propagates.
        """

        try:
            content_fingerprint = fingerprint_file(source_path)
        except OSError as exc:
            logger.error("Unable to fingerprint staged upload path=%s: %s", source_path, exc)
            self._delete_staged_quietly(source_path)
            raise SourceFileError(f"Unable to read staged upload at {source_path}") from exc

        with self._session_factory() as db:
            repository = IngestionJobRepository(db)
            with db.begin():
                job = repository.find_queued_duplicate(
                    owner_identity=owner_identity,
                    content_fingerprint=content_fingerprint,
                )
                created = job is None
                if job is None:
                    job = repository.create_job(
                        owner_identity=owner_identity,
                        source_path=source_path,
                        content_fingerprint=content_fingerprint,
                    )

        envelope = JobEnvelope(
            source_path=job.source_path,
            owner_identity=job.owner_identity,
            job_id=str(job.id),
        )
        try:
            result = self._job_queue.enqueue(envelope, dedupe_key=dedupe_key_for(job.id))
        except JobQueueError:
            if created:
                self._stop_unqueued_job(job.id)
            if created or job.source_path != source_path:
                self._delete_staged_quietly(source_path)
            raise

        if created:
            logger.info(
                "Ingestion job created id=%s owner=%s fingerprint=%s",
                job.id,
                owner_identity,
                content_fingerprint,
            )
        else:
            logger.info(
                "Duplicate upload reuses queued job id=%s owner=%s already_queued=%s",
                job.id,
                owner_identity,
                result.already_queued,
            )
            if job.source_path != source_path:
                self._delete_staged_quietly(source_path)
        return job

    def get_history(self, *, owner_identity: str) -> HistoryPayload:
        with self._session_factory() as db:
            return load_history(db, owner_identity)

    def get_processed_file_data(
        self,
        *,
        job_id: uuid.UUID,
        skip: int = 0,
        limit: int = 10,
    ) -> ProcessedFileDataResponse | None:
        with self._session_factory() as db:
            job = IngestionJobRepository(db).get_job(job_id)
            if job is None:
                return None
            record_repository = IngestedRecordRepository(db)
            records = record_repository.list_page(job_id, skip=skip, limit=limit)
            return ProcessedFileDataResponse(
                file_process=ProcessedFileSummary(
                    id=job.id,
                    user_email=job.owner_identity,
                    total=job.total,
                    processed=job.processed,
                    success=job.success,
                    failed=job.failed,
                    processing_errors=[RowErrorPayload(**entry) for entry in job.errors or []],
                    status=job.status,
                    created_at=job.created_at,
                    updated_at=job.updated_at,
                ),
                records=[RecordPayload(id=view.id, record=view.record) for view in records],
                total_records=record_repository.count_for_job(job_id),
            )

    def _stop_unqueued_job(self, job_id: uuid.UUID) -> None:
        with self._session_factory() as db:
            repository = IngestionJobRepository(db)
            with db.begin():
                job = repository.get_job(job_id)
                if job is not None and job.status == IngestionJobStatus.QUEUED:
                    repository.apply_update(job, {"status": IngestionJobStatus.STOPPED})
        logger.warning("Ingestion job id=%s stopped: queue rejected it", job_id)

    def _delete_staged_quietly(self, storage_path: str) -> None:
        try:
            self._storage.delete(storage_path=storage_path)
        except FileStorageError:
            logger.warning("Failed to delete redundant staged upload path=%s", storage_path)


@lru_cache(maxsize=1)
def get_ingestion_intake_service() -> IngestionIntakeService:
    return IngestionIntakeService(
        job_queue=get_job_queue(),
        storage=LocalStagingStorage(get_csv_ingestion_settings().upload_dir),
    )
