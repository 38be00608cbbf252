"""
app/services/batch_processor.py

Streaming batch processor for staged CSV uploads.

Rows are read lazily and buffered up to ``batch_size``. Each full buffer (and
the final partial one) is flushed: every row is written independently, rows
that fail are still stored as failed records, and the cumulative counters are
handed to the listener before the next row is read. Batches never overlap, so
memory stays bounded by one buffer and progress never goes backwards.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import lru_cache
from typing import Any, Protocol

from app.config import get_csv_ingestion_settings
from app.domain.ingestion import BatchProgress, BatchResult, IngestionSummary, RowError
from app.services.csv_stream import build_record_payload, iter_rows, raw_record_payload
from db.repositories.errors import RecordWriteError
from db.repositories.record_store import RecordStore, SQLRecordStore

logger = logging.getLogger(__name__)


class ProgressListener(Protocol):
    """
    Receives batch outcomes in order; called from the processing thread.
    """

    def batch_flushed(self, progress: BatchProgress) -> None:
        ...

    def progress(self, percent: int) -> None:
        ...

    def log(self, message: str) -> None:
        ...


def progress_percent(processed: int, total: int) -> int:
    """
    Whole-number percentage, rounded half up and capped at 100.
    """

    if total <= 0:
        return 100
    return min(100, (processed * 100 * 2 + total) // (total * 2))


class BatchProcessor:
    """
    Streams one CSV file into the record store in bounded batches.
    """

    def __init__(
        self,
        *,
        batch_size: int,
        write_concurrency: int = 1,
        infer_numbers: bool = False,
        record_store: RecordStore | None = None,
        remove_file: Callable[[str], None] = os.remove,
    ) -> None:
        self._batch_size = max(1, batch_size)
        self._write_concurrency = max(1, write_concurrency)
        self._infer_numbers = infer_numbers
        self._record_store = record_store or SQLRecordStore()
        self._remove_file = remove_file

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def process(
        self,
        source_path: str,
        job_id: uuid.UUID,
        total: int,
        listener: ProgressListener,
    ) -> IngestionSummary:
        """
        Ingest every row of ``source_path`` and return the terminal summary.

        ``total`` comes from the counting pass and is the progress denominator.
        SourceFileError propagates when the file cannot be read or parsed.
        """

        processed = 0
        failed = 0
        errors: list[RowError] = []
        last_percent: int | None = None

        if total > 0:
            buffer: list[dict[str | None, Any]] = []
            row_number = 0
            for row in iter_rows(source_path):
                row_number += 1
                buffer.append(row)
                if len(buffer) < self._batch_size:
                    continue
                result = self.flush(buffer, start_row=row_number - len(buffer) + 1, job_id=job_id)
                buffer = []
                processed, failed = processed + result.size, failed + result.failed
                errors.extend(result.errors)
                last_percent = self._report(listener, result, processed, failed, errors, total)

            if buffer:
                result = self.flush(buffer, start_row=row_number - len(buffer) + 1, job_id=job_id)
                processed, failed = processed + result.size, failed + result.failed
                errors.extend(result.errors)
                last_percent = self._report(listener, result, processed, failed, errors, total)

        if last_percent != 100:
            listener.progress(100)

        listener.log("Done processing")
        self._release_source(source_path, listener)

        if processed != total:
            logger.warning(
                "Row count changed between passes job=%s counted=%s processed=%s",
                job_id,
                total,
                processed,
            )
        final_total = processed
        return IngestionSummary(
            total=final_total,
            success=final_total - failed,
            failed=failed,
            errors=list(errors),
        )

    def flush(
        self,
        rows: list[dict[str | None, Any]],
        *,
        start_row: int,
        job_id: uuid.UUID,
    ) -> BatchResult:
        """
        Write one buffered batch; row numbers start at ``start_row``.

        Row failures never escape: each is stored as a failed record and
        reported in ``BatchResult.errors`` in source order.
        """

        numbered = [(start_row + offset, row) for offset, row in enumerate(rows)]
        if self._write_concurrency == 1 or len(numbered) == 1:
            outcomes = [self._write_row(job_id, row_number, row) for row_number, row in numbered]
        else:
            workers = min(self._write_concurrency, len(numbered))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="record-writer") as pool:
                outcomes = list(pool.map(lambda item: self._write_row(job_id, *item), numbered))

        row_errors = [outcome for outcome in outcomes if outcome is not None]
        return BatchResult(
            start_row=start_row,
            inserted=len(outcomes) - len(row_errors),
            failed=len(row_errors),
            errors=row_errors,
        )

    def _write_row(
        self,
        job_id: uuid.UUID,
        row_number: int,
        row: dict[str | None, Any],
    ) -> RowError | None:
        try:
            payload = build_record_payload(row, infer_numbers=self._infer_numbers)
            self._record_store.write(job_id=job_id, row_number=row_number, data=payload)
            return None
        except (ValueError, RecordWriteError) as exc:
            message = str(exc) or type(exc).__name__

        logger.warning("Row write failed job=%s row=%s message=%s", job_id, row_number, message)
        try:
            self._record_store.write_failed(
                job_id=job_id,
                row_number=row_number,
                data=raw_record_payload(row),
                message=message,
            )
        except RecordWriteError:
            logger.exception("Unable to store failed record job=%s row=%s", job_id, row_number)
        return RowError(row=row_number, message=message)

    def _report(
        self,
        listener: ProgressListener,
        result: BatchResult,
        processed: int,
        failed: int,
        errors: list[RowError],
        total: int,
    ) -> int:
        listener.log(f"Batch @{result.start_row}: +{result.inserted}, failed {result.failed}")
        listener.batch_flushed(
            BatchProgress(
                batch=result,
                processed=processed,
                success=processed - failed,
                failed=failed,
                errors=list(errors),
            )
        )
        percent = progress_percent(processed, total)
        listener.progress(percent)
        return percent

    def _release_source(self, source_path: str, listener: ProgressListener) -> None:
        try:
            self._remove_file(source_path)
        except OSError as exc:
            logger.warning("Failed to delete staged file path=%s: %s", source_path, exc)
            return
        listener.log("File deleted")


@lru_cache(maxsize=1)
def get_batch_processor() -> BatchProcessor:
    """
    Build and cache the processor with env-driven settings.
    """

    settings = get_csv_ingestion_settings()
    return BatchProcessor(
        batch_size=settings.batch_size,
        write_concurrency=settings.write_concurrency,
        infer_numbers=settings.infer_numbers,
    )
