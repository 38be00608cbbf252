"""
Repository-layer exceptions for staging and record persistence.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class FileStorageError(RepositoryError):
    """Raised when staging or deleting an uploaded file fails."""


class RecordWriteError(RepositoryError):
    """Raised when one ingested row cannot be persisted."""
