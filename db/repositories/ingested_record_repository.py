"""
Repository for ingested record writes and paged lookup.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.ingested_record import IngestedRecord, IngestedRecordStatus
from db.repositories.types import RecordView


class IngestedRecordRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add_record(
        self,
        *,
        job_id: uuid.UUID,
        row_number: int,
        data: dict[str, Any],
        status: str = IngestedRecordStatus.PENDING,
        error: str | None = None,
    ) -> IngestedRecord:
        record = IngestedRecord(
            ingestion_job_id=job_id,
            row_number=row_number,
            data=data,
            status=status,
            error=error,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def count_for_job(self, job_id: uuid.UUID, *, status: str | None = None) -> int:
        stmt = select(func.count()).select_from(IngestedRecord).where(
            IngestedRecord.ingestion_job_id == job_id
        )
        if status is not None:
            stmt = stmt.where(IngestedRecord.status == status)
        return int(self._session.scalar(stmt) or 0)

    def list_page(self, job_id: uuid.UUID, *, skip: int = 0, limit: int = 10) -> list[RecordView]:
        stmt = (
            select(IngestedRecord)
            .where(IngestedRecord.ingestion_job_id == job_id)
            .order_by(IngestedRecord.row_number.asc(), IngestedRecord.id.asc())
            .offset(max(0, skip))
            .limit(max(1, limit))
        )
        return [_to_view(record) for record in self._session.scalars(stmt).all()]


def _to_view(record: IngestedRecord) -> RecordView:
    # Job link, row number and write timestamps are internal.
    payload = dict(record.data or {})
    payload["status"] = record.status
    payload["error"] = record.error
    return RecordView(id=record.id, record=payload)
