"""
app/domain package marker.
"""

from app.domain.ingestion import (
    BatchProgress,
    BatchResult,
    EnqueueResult,
    IngestionEvent,
    IngestionSummary,
    JobEnvelope,
    RowError,
)

__all__ = [
    "BatchProgress",
    "BatchResult",
    "EnqueueResult",
    "IngestionEvent",
    "IngestionSummary",
    "JobEnvelope",
    "RowError",
]
