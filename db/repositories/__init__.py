"""
Repository layer exports.
"""

from db.repositories.errors import FileStorageError, RecordWriteError, RepositoryError
from db.repositories.ingested_record_repository import IngestedRecordRepository
from db.repositories.ingestion_job_repository import IngestionJobRepository
from db.repositories.record_store import RecordStore, SQLRecordStore
from db.repositories.storage import LocalStagingStorage, StagingStorage
from db.repositories.types import RecordView, StagedUpload

__all__ = [
    "IngestedRecordRepository",
    "IngestionJobRepository",
    "RecordStore",
    "SQLRecordStore",
    "StagingStorage",
    "LocalStagingStorage",
    "StagedUpload",
    "RecordView",
    "RepositoryError",
    "FileStorageError",
    "RecordWriteError",
]
