"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.ingested_record import IngestedRecord, IngestedRecordStatus
from db.models.ingestion_job import IngestionJob, IngestionJobStatus

__all__ = [
    "IngestedRecord",
    "IngestedRecordStatus",
    "IngestionJob",
    "IngestionJobStatus",
]
