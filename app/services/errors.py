"""
Service-layer exceptions for the ingestion pipeline.

`user_message` is the text shown to the uploader in the `error` event; the
exception text itself may carry paths and is only logged.
"""

from __future__ import annotations


class IngestionError(RuntimeError):
    user_message = "Processing failed"


class TrackerNotFoundError(IngestionError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Ingestion job not found: {job_id}")
        self.job_id = job_id
        self.user_message = f"Tracker {job_id} not found"


class SourceFileMissingError(IngestionError):
    user_message = "File not found"

    def __init__(self, path: str) -> None:
        super().__init__(f"Missing source file at {path}")
        self.path = path


class SourceFileError(IngestionError):
    """
    Raised when the source file cannot be read or parsed as CSV.
    """

    user_message = "Error reading file"


class JobQueueError(IngestionError):
    user_message = "Queue failed"
