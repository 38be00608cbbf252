from __future__ import annotations

import io
import uuid

import pytest

from db.models.ingested_record import IngestedRecordStatus
from db.models.ingestion_job import (
    IngestionJobStatus,
    InvalidStatusTransitionError,
    ensure_transition,
)
from db.repositories.errors import FileStorageError
from db.repositories.ingested_record_repository import IngestedRecordRepository
from db.repositories.ingestion_job_repository import IngestionJobRepository
from db.repositories.record_store import SQLRecordStore
from db.repositories.storage import LocalStagingStorage


class TestStatusLifecycle:
    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (IngestionJobStatus.QUEUED, IngestionJobStatus.PROCESSING),
            (IngestionJobStatus.PROCESSING, IngestionJobStatus.PROCESSING),
            (IngestionJobStatus.PROCESSING, IngestionJobStatus.COMPLETED),
            (IngestionJobStatus.PROCESSING, IngestionJobStatus.FAILED),
        ],
    )
    def test_allowed(self, current: str, target: str) -> None:
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (IngestionJobStatus.QUEUED, IngestionJobStatus.COMPLETED),
            (IngestionJobStatus.COMPLETED, IngestionJobStatus.PROCESSING),
            (IngestionJobStatus.FAILED, IngestionJobStatus.QUEUED),
        ],
    )
    def test_rejected(self, current: str, target: str) -> None:
        with pytest.raises(InvalidStatusTransitionError):
            ensure_transition(current, target)


class TestIngestionJobRepository:
    def test_apply_update_checks_lifecycle(self, session_factory) -> None:
        with session_factory() as db:
            repository = IngestionJobRepository(db)
            job = repository.create_job(
                owner_identity="ann@example.com",
                source_path="/staging/a.csv",
                content_fingerprint="a" * 64,
            )
            with pytest.raises(InvalidStatusTransitionError):
                repository.apply_update(job, {"status": IngestionJobStatus.COMPLETED})
            assert job.status == IngestionJobStatus.QUEUED

    def test_apply_update_rejects_unknown_fields(self, session_factory) -> None:
        with session_factory() as db:
            repository = IngestionJobRepository(db)
            job = repository.create_job(
                owner_identity="ann@example.com",
                source_path="/staging/a.csv",
                content_fingerprint="a" * 64,
            )
            with pytest.raises(ValueError):
                repository.apply_update(job, {"owner_identity": "bob@example.com"})

    def test_errors_are_persisted(self, session_factory) -> None:
        with session_factory() as db:
            repository = IngestionJobRepository(db)
            job = repository.create_job(
                owner_identity="ann@example.com",
                source_path="/staging/a.csv",
                content_fingerprint="a" * 64,
            )
            repository.apply_update(job, {"failed": 1, "errors": [{"row": 7, "message": "bad"}]})
            db.commit()
            job_id = job.id

        with session_factory() as db:
            stored = IngestionJobRepository(db).get_job(job_id)
            assert stored.errors == [{"row": 7, "message": "bad"}]
            assert stored.failed == 1


class TestSQLRecordStore:
    def test_write_and_write_failed(self, session_factory) -> None:
        with session_factory() as db:
            with db.begin():
                job = IngestionJobRepository(db).create_job(
                    owner_identity="ann@example.com",
                    source_path="/staging/a.csv",
                    content_fingerprint="a" * 64,
                )
        store = SQLRecordStore(session_factory=session_factory)

        store.write(job_id=job.id, row_number=1, data={"name": "ann"})
        store.write_failed(job_id=job.id, row_number=2, data={"name": "bob"}, message="too long")

        with session_factory() as db:
            repository = IngestedRecordRepository(db)
            assert repository.count_for_job(job.id, status=IngestedRecordStatus.SUCCESS) == 1
            [first, second] = repository.list_page(job.id)
            assert first.record == {"name": "ann", "status": "success", "error": None}
            assert second.record == {"name": "bob", "status": "failed", "error": "too long"}
            assert repository.count_for_job(uuid.uuid4()) == 0


class TestLocalStagingStorage:
    def test_delete_missing_file_is_noop(self, tmp_path) -> None:
        LocalStagingStorage(tmp_path).delete(storage_path=str(tmp_path / "absent.csv"))

    def test_rejects_empty_name(self, tmp_path) -> None:
        with pytest.raises(FileStorageError):
            LocalStagingStorage(tmp_path).stage(file_name="  ", stream=io.BytesIO(b"a\n"))
