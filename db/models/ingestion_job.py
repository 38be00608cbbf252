"""
db/models/ingestion_job.py

Tracker row for one uploaded CSV file and its ingestion lifecycle.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class IngestionJobStatus:
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


TERMINAL_STATUSES: frozenset[str] = frozenset(
    {
        IngestionJobStatus.COMPLETED,
        IngestionJobStatus.FAILED,
        IngestionJobStatus.STOPPED,
    }
)

# processing -> processing is a re-claim after queue redelivery.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    IngestionJobStatus.QUEUED: frozenset(
        {IngestionJobStatus.PROCESSING, IngestionJobStatus.STOPPED}
    ),
    IngestionJobStatus.PROCESSING: frozenset(
        {
            IngestionJobStatus.PROCESSING,
            IngestionJobStatus.COMPLETED,
            IngestionJobStatus.FAILED,
            IngestionJobStatus.STOPPED,
        }
    ),
    IngestionJobStatus.COMPLETED: frozenset(),
    IngestionJobStatus.FAILED: frozenset(),
    IngestionJobStatus.STOPPED: frozenset(),
}


class InvalidStatusTransitionError(ValueError):
    """
    Raised when a tracker status change is not allowed by the lifecycle.
    """

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Illegal ingestion job transition {current!r} -> {target!r}.")
        self.current = current
        self.target = target


def ensure_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransitionError(current, target)


class IngestionJob(Base, TimestampMixin):
    __tablename__ = "ingestion_jobs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_identity: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Uploader identity; routing key for progress broadcasts",
    )
    source_path: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Staged upload owned by this job until cleanup",
    )
    content_fingerprint: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="sha256 of the uploaded bytes",
    )
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Ordered [{row, message}] entries, one per failed row",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=IngestionJobStatus.QUEUED,
    )

    __table_args__ = (
        Index("ix_ingestion_jobs_owner_identity", "owner_identity"),
        Index("ix_ingestion_jobs_status", "status"),
        Index("ix_ingestion_jobs_created_at", "created_at"),
        Index(
            "ix_ingestion_jobs_owner_fingerprint_status",
            "owner_identity",
            "content_fingerprint",
            "status",
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
