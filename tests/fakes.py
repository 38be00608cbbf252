"""
Test doubles shared across ingestion tests.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Any

from app.domain.ingestion import EnqueueResult, IngestionSummary, JobEnvelope
from db.repositories.errors import RecordWriteError


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, Any]] = []

    def publish(self, routing_key: str, event: str, payload: Any) -> None:
        self.messages.append((routing_key, event, payload))

    def events_for(self, routing_key: str, event: str) -> list[Any]:
        return [payload for key, name, payload in self.messages if key == routing_key and name == event]

    def names_for(self, routing_key: str) -> list[str]:
        return [name for key, name, _ in self.messages if key == routing_key]


class RecordingListener:
    def __init__(self) -> None:
        self.flushes: list[Any] = []
        self.percents: list[int] = []
        self.logs: list[str] = []

    def batch_flushed(self, progress: Any) -> None:
        self.flushes.append(progress)

    def progress(self, percent: int) -> None:
        self.percents.append(percent)

    def log(self, message: str) -> None:
        self.logs.append(message)


class InMemoryRecordStore:
    """
    Stores rows in a dict; rows whose number is in `reject_rows` fail.
    """

    def __init__(self, reject_rows: set[int] | None = None) -> None:
        self.reject_rows = reject_rows or set()
        self.written: dict[int, dict[str, Any]] = {}
        self.failed: dict[int, tuple[dict[str, Any], str]] = {}

    def write(self, *, job_id: uuid.UUID, row_number: int, data: dict[str, Any]) -> None:
        if row_number in self.reject_rows:
            raise RecordWriteError(f"rejected row {row_number}")
        self.written[row_number] = data

    def write_failed(
        self,
        *,
        job_id: uuid.UUID,
        row_number: int,
        data: dict[str, Any],
        message: str,
    ) -> None:
        self.failed[row_number] = (data, message)


class FakeNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.sent: list[tuple[str, IngestionSummary, str]] = []

    def notify(self, owner_identity: str, summary: IngestionSummary, job_id: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((owner_identity, summary, job_id))


class FakeJobQueue:
    """
    Accepts each dedupe key once while it is pending; raises `error` when set.
    """

    def __init__(self, error: Exception | None = None) -> None:
        self.pending: dict[str, JobEnvelope] = {}
        self.offers: list[str] = []
        self.error = error

    def enqueue(self, envelope: JobEnvelope, *, dedupe_key: str) -> EnqueueResult:
        self.offers.append(dedupe_key)
        if self.error is not None:
            raise self.error
        if dedupe_key in self.pending:
            return EnqueueResult(dedupe_key=dedupe_key, accepted=False)
        self.pending[dedupe_key] = envelope
        return EnqueueResult(dedupe_key=dedupe_key, accepted=True)


def write_csv(path: Path, header: str, rows: list[str]) -> str:
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return str(path)
