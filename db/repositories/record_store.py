"""
Record store used by the batch processor.

Every write runs in its own session and transaction so rows of one batch can
be written from several threads without coordinating with each other.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.models.ingested_record import IngestedRecordStatus
from db.repositories.errors import RecordWriteError
from db.repositories.ingested_record_repository import IngestedRecordRepository

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    def write(self, *, job_id: uuid.UUID, row_number: int, data: dict[str, Any]) -> None:
        """Persist one row as a successful record. Raises RecordWriteError."""
        ...

    def write_failed(
        self,
        *,
        job_id: uuid.UUID,
        row_number: int,
        data: dict[str, Any],
        message: str,
    ) -> None:
        """Persist one row as a failed record carrying the error message."""
        ...


class SQLRecordStore:
    def __init__(self, *, session_factory: sessionmaker[Session] | None = None) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

    def write(self, *, job_id: uuid.UUID, row_number: int, data: dict[str, Any]) -> None:
        try:
            with self._session_factory() as session:
                repository = IngestedRecordRepository(session)
                with session.begin():
                    record = repository.add_record(job_id=job_id, row_number=row_number, data=data)
                    record.status = IngestedRecordStatus.SUCCESS
        except SQLAlchemyError as exc:
            raise RecordWriteError(_describe(exc)) from exc

    def write_failed(
        self,
        *,
        job_id: uuid.UUID,
        row_number: int,
        data: dict[str, Any],
        message: str,
    ) -> None:
        # The row payload may be what the database rejected; fall back to an
        # empty payload so the failure itself stays queryable.
        for payload in (data, {}):
            try:
                with self._session_factory() as session:
                    repository = IngestedRecordRepository(session)
                    with session.begin():
                        repository.add_record(
                            job_id=job_id,
                            row_number=row_number,
                            data=payload,
                            status=IngestedRecordStatus.FAILED,
                            error=message,
                        )
                return
            except SQLAlchemyError as exc:
                last_error = exc
                logger.warning(
                    "Failed record write rejected job=%s row=%s payload_keys=%s: %s",
                    job_id,
                    row_number,
                    len(payload),
                    _describe(exc),
                )
        raise RecordWriteError(_describe(last_error)) from last_error


def _describe(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    message = str(original) if original is not None else str(exc)
    return message.strip().splitlines()[0][:500] if message.strip() else type(exc).__name__
