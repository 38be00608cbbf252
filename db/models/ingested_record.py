"""
db/models/ingested_record.py

One ingested CSV row, stored schema-less and tagged with its owning job.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, utc_now


class IngestedRecordStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class IngestedRecord(Base):
    __tablename__ = "ingested_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    ingestion_job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ingestion_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    row_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="1-based position of the row in the source stream",
    )
    data: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Column name -> scalar (string, number or null)",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=IngestedRecordStatus.PENDING,
    )
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_ingested_records_job_row", "ingestion_job_id", "row_number"),
        Index("ix_ingested_records_status", "status"),
    )
