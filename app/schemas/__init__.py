"""
app/schemas package marker.
"""

from app.schemas.ingestion_events import (
    HistoryEntry,
    HistoryPayload,
    ProcessedFileDataResponse,
    ProcessedFileSummary,
    ProgressPayload,
    RecordPayload,
    RowErrorPayload,
    SummaryPayload,
    UploadAcceptedResponse,
)

__all__ = [
    "HistoryEntry",
    "HistoryPayload",
    "ProcessedFileDataResponse",
    "ProcessedFileSummary",
    "ProgressPayload",
    "RecordPayload",
    "RowErrorPayload",
    "SummaryPayload",
    "UploadAcceptedResponse",
]
