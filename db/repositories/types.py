"""
Typed DTOs used by repository staging and query flows.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class StagedUpload:
    """
    An uploaded file written to the staging directory.
    """

    file_name: str
    storage_path: str
    file_size_bytes: int
    stored_at: datetime


@dataclass(frozen=True)
class RecordView:
    """
    One ingested record with internal fields stripped.
    """

    id: uuid.UUID
    record: dict[str, Any] = field(default_factory=dict)
