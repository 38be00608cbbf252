"""
tests/test_batch_processor.py

Pytest unit tests for BatchProcessor with an in-memory record store.

Coverage
--------
- Batch boundaries and 1-based row numbering across flushes
- Partial batch failure (row-level isolation)
- Malformed rows stored as failed records
- Header-only file
- Monotonic progress ending at exactly 100
- Staged file cleanup
- Row count drift between the counting and ingestion passes
"""

from __future__ import annotations

import uuid
from pathlib import Path

import pytest

from app.services.batch_processor import BatchProcessor, progress_percent
from app.services.csv_stream import EXTRA_VALUES_KEY
from fakes import InMemoryRecordStore, RecordingListener, write_csv


def _rows(count: int) -> list[str]:
    return [f"user{i},{i}" for i in range(1, count + 1)]


@pytest.fixture()
def job_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def listener() -> RecordingListener:
    return RecordingListener()


# ---------------------------------------------------------------------------
# progress_percent
# ---------------------------------------------------------------------------


class TestProgressPercent:
    def test_rounds_to_nearest(self) -> None:
        assert progress_percent(1, 3) == 33
        assert progress_percent(2, 3) == 67

    def test_half_rounds_up(self) -> None:
        assert progress_percent(1, 200) == 1

    def test_zero_total_is_complete(self) -> None:
        assert progress_percent(0, 0) == 100

    def test_capped_at_100(self) -> None:
        assert progress_percent(5, 4) == 100


# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------


class TestBatching:
    def test_two_full_batches_and_a_partial_one(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(13))
        store = InMemoryRecordStore()
        processor = BatchProcessor(batch_size=5, record_store=store)

        summary = processor.process(path, job_id, 13, listener)

        assert [flush.batch.start_row for flush in listener.flushes] == [1, 6, 11]
        assert [flush.batch.size for flush in listener.flushes] == [5, 5, 3]
        assert [flush.processed for flush in listener.flushes] == [5, 10, 13]
        assert sorted(store.written) == list(range(1, 14))
        assert store.written[11] == {"name": "user11", "score": "11"}
        assert summary.total == 13
        assert summary.success == 13
        assert summary.failed == 0

    def test_progress_is_monotonic_and_ends_at_100_once(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(13))
        BatchProcessor(batch_size=5, record_store=InMemoryRecordStore()).process(path, job_id, 13, listener)

        assert listener.percents == [38, 77, 100]

    def test_batch_log_lines(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(7))
        BatchProcessor(batch_size=5, record_store=InMemoryRecordStore({6})).process(path, job_id, 7, listener)

        assert listener.logs[:2] == ["Batch @1: +5, failed 0", "Batch @6: +1, failed 1"]
        assert listener.logs[2:] == ["Done processing", "File deleted"]

    def test_infer_numbers(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", ["ann,12", "bob,4.5"])
        store = InMemoryRecordStore()
        BatchProcessor(batch_size=10, infer_numbers=True, record_store=store).process(path, job_id, 2, listener)

        assert store.written[1] == {"name": "ann", "score": 12}
        assert store.written[2] == {"name": "bob", "score": 4.5}


# ---------------------------------------------------------------------------
# Row failures
# ---------------------------------------------------------------------------


class TestRowFailures:
    def test_failed_rows_do_not_affect_siblings(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(5))
        store = InMemoryRecordStore(reject_rows={2, 4})

        summary = BatchProcessor(batch_size=5, record_store=store).process(path, job_id, 5, listener)

        flush = listener.flushes[0]
        assert flush.batch.inserted == 3
        assert flush.batch.failed == 2
        assert sorted(store.written) == [1, 3, 5]
        assert sorted(store.failed) == [2, 4]
        assert store.failed[2][1] == "rejected row 2"
        assert [error.row for error in summary.errors] == [2, 4]
        assert summary.success == 3
        assert summary.failed == 2
        assert summary.success + summary.failed == summary.total

    def test_malformed_row_is_stored_as_failed(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", ["ann,1", "bob,2,extra", "cid,3"])
        store = InMemoryRecordStore()

        summary = BatchProcessor(batch_size=10, record_store=store).process(path, job_id, 3, listener)

        assert summary.failed == 1
        assert summary.errors[0].row == 2
        data, _ = store.failed[2]
        assert data[EXTRA_VALUES_KEY] == ["extra"]
        assert sorted(store.written) == [1, 3]

    def test_concurrent_writes_keep_error_order(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(10))
        store = InMemoryRecordStore(reject_rows={9, 3, 7})

        summary = BatchProcessor(batch_size=10, write_concurrency=4, record_store=store).process(
            path, job_id, 10, listener
        )

        assert [error.row for error in summary.errors] == [3, 7, 9]
        assert len(store.written) == 7

    def test_cumulative_errors_match_failed_count(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(12))
        store = InMemoryRecordStore(reject_rows={1, 6, 12})

        BatchProcessor(batch_size=4, record_store=store).process(path, job_id, 12, listener)

        for flush in listener.flushes:
            assert len(flush.errors) == flush.failed
            assert flush.success + flush.failed == flush.processed


# ---------------------------------------------------------------------------
# Edge cases
# ---------------------------------------------------------------------------


class TestEdgeCases:
    def test_header_only_file(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "empty.csv", "name,score", [])

        summary = BatchProcessor(batch_size=5, record_store=InMemoryRecordStore()).process(
            path, job_id, 0, listener
        )

        assert listener.flushes == []
        assert listener.percents == [100]
        assert summary.total == 0
        assert summary.success == 0
        assert summary.failed == 0
        assert not Path(path).exists()

    def test_source_file_is_deleted(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(3))
        BatchProcessor(batch_size=5, record_store=InMemoryRecordStore()).process(path, job_id, 3, listener)

        assert not Path(path).exists()
        assert listener.logs[-1] == "File deleted"

    def test_cleanup_failure_does_not_fail_the_run(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(3))

        def remove_file(_: str) -> None:
            raise PermissionError("read-only")

        summary = BatchProcessor(
            batch_size=5,
            record_store=InMemoryRecordStore(),
            remove_file=remove_file,
        ).process(path, job_id, 3, listener)

        assert summary.total == 3
        assert "File deleted" not in listener.logs
        assert Path(path).exists()

    def test_row_count_drift_uses_processed_count(self, tmp_path: Path, job_id, listener) -> None:
        path = write_csv(tmp_path / "users.csv", "name,score", _rows(13))

        summary = BatchProcessor(batch_size=5, record_store=InMemoryRecordStore()).process(
            path, job_id, 20, listener
        )

        assert summary.total == 13
        assert listener.percents == [25, 50, 65, 100]
