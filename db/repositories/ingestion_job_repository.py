"""
Repository for ingestion job (tracker) persistence and history lookup.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.ingestion_job import IngestionJob, IngestionJobStatus, ensure_transition

_MUTABLE_FIELDS = frozenset({"total", "processed", "success", "failed", "errors", "status"})


class IngestionJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_job(
        self,
        *,
        owner_identity: str,
        source_path: str,
        content_fingerprint: str,
    ) -> IngestionJob:
        job = IngestionJob(
            owner_identity=owner_identity,
            source_path=source_path,
            content_fingerprint=content_fingerprint,
            status=IngestionJobStatus.QUEUED,
            errors=[],
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def get_job(self, job_id: uuid.UUID) -> IngestionJob | None:
        return self._session.get(IngestionJob, job_id)

    def find_queued_duplicate(
        self,
        *,
        owner_identity: str,
        content_fingerprint: str,
    ) -> IngestionJob | None:
        stmt: Select[tuple[IngestionJob]] = (
            select(IngestionJob)
            .where(IngestionJob.owner_identity == owner_identity)
            .where(IngestionJob.content_fingerprint == content_fingerprint)
            .where(IngestionJob.status == IngestionJobStatus.QUEUED)
            .order_by(IngestionJob.created_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def list_for_owner(self, owner_identity: str, *, limit: int | None = None) -> list[IngestionJob]:
        stmt: Select[tuple[IngestionJob]] = (
            select(IngestionJob)
            .where(IngestionJob.owner_identity == owner_identity)
            .order_by(IngestionJob.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def apply_update(self, job: IngestionJob, fields: dict[str, Any]) -> IngestionJob:
        """
        Apply tracker field changes in place; the caller commits.

        Status changes are checked against the lifecycle. `errors` is always
        replaced with a fresh list so the JSON column is flagged dirty.
        """

        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown ingestion job fields: {sorted(unknown)}")

        if "status" in fields:
            ensure_transition(job.status, fields["status"])
        for name, value in fields.items():
            if name == "errors":
                value = [dict(entry) for entry in value]
            setattr(job, name, value)
        self._session.flush()
        return job
