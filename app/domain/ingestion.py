"""
app/domain/ingestion.py

Domain models shared by the queue, batch processor and coordinator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class IngestionEvent:
    """
    Event names published to progress subscribers.
    """

    FILE_PROCESS_ID = "fileProcessId"
    LOG = "log"
    HISTORY = "history"
    PROGRESS = "progress"
    SUMMARY = "summary"
    ERROR = "error"


@dataclass(frozen=True)
class RowError:
    """
    Failure of one source row; `row` is 1-based over the whole stream.
    """

    row: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "message": self.message}


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of flushing one buffered batch.
    """

    start_row: int
    inserted: int
    failed: int
    errors: list[RowError] = field(default_factory=list)

    @property
    def size(self) -> int:
        return self.inserted + self.failed


@dataclass(frozen=True)
class BatchProgress:
    """
    Cumulative counters after a flush, as persisted on the tracker.
    """

    batch: BatchResult
    processed: int
    success: int
    failed: int
    errors: list[RowError] = field(default_factory=list)

    def tracker_fields(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "success": self.success,
            "failed": self.failed,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass(frozen=True)
class IngestionSummary:
    """
    Terminal result of one ingestion run.
    """

    total: int
    success: int
    failed: int
    errors: list[RowError] = field(default_factory=list)


@dataclass(frozen=True)
class JobEnvelope:
    """
    Queue payload; carries only what a worker needs to find the tracker.
    """

    source_path: str
    owner_identity: str
    job_id: str

    def to_dict(self) -> dict[str, str]:
        return {
            "source_path": self.source_path,
            "owner_identity": self.owner_identity,
            "job_id": self.job_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> JobEnvelope:
        missing = [key for key in ("source_path", "owner_identity", "job_id") if not payload.get(key)]
        if missing:
            raise ValueError(f"Job envelope is missing fields: {missing}")
        return cls(
            source_path=str(payload["source_path"]),
            owner_identity=str(payload["owner_identity"]),
            job_id=str(payload["job_id"]),
        )


@dataclass(frozen=True)
class EnqueueResult:
    """
    Queue response to an enqueue request.
    """

    dedupe_key: str
    accepted: bool

    @property
    def already_queued(self) -> bool:
        return not self.accepted
