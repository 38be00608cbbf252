"""
History query: every ingestion job of one owner, newest first, plus the job
currently being processed.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.schemas.ingestion_events import HistoryEntry, HistoryPayload
from db.models.ingestion_job import IngestionJob, IngestionJobStatus
from db.repositories.ingestion_job_repository import IngestionJobRepository


def to_history_entry(job: IngestionJob) -> HistoryEntry:
    return HistoryEntry(
        id=job.id,
        status=job.status,
        total=job.total,
        processed=job.processed,
        success=job.success,
        failed=job.failed,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def load_history(db: Session, owner_identity: str) -> HistoryPayload:
    # At most one processing job per owner is assumed; the newest one wins.
    jobs = IngestionJobRepository(db).list_for_owner(owner_identity)
    current = next((job for job in jobs if job.status == IngestionJobStatus.PROCESSING), None)
    return HistoryPayload(
        jobs=[to_history_entry(job) for job in jobs],
        current_processing_id=str(current.id) if current is not None else None,
    )
