"""
Wire payloads of the progress broadcast events and the history/record queries.

Field names on the wire are camelCase to match what subscribers already read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class RowErrorPayload(_WireModel):
    row: int
    message: str


class ProgressPayload(_WireModel):
    process_id: str = Field(alias="processId")
    percent: int = Field(ge=0, le=100)


class SummaryPayload(_WireModel):
    total: int
    success: int
    failed: int
    errors: list[RowErrorPayload] = Field(default_factory=list)
    process_id: str = Field(alias="processId")


class HistoryEntry(_WireModel):
    id: UUID = Field(alias="_id")
    status: str
    total: int
    processed: int
    success: int
    failed: int
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class HistoryPayload(_WireModel):
    jobs: list[HistoryEntry] = Field(default_factory=list, alias="list")
    current_processing_id: str | None = Field(default=None, alias="currentProcessingId")


class ProcessedFileSummary(_WireModel):
    id: UUID = Field(alias="_id")
    user_email: str = Field(alias="userEmail")
    total: int
    processed: int
    success: int
    failed: int
    processing_errors: list[RowErrorPayload] = Field(default_factory=list, alias="processingErrors")
    status: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class RecordPayload(_WireModel):
    id: UUID = Field(alias="_id")
    record: dict[str, Any] = Field(default_factory=dict)


class ProcessedFileDataResponse(_WireModel):
    file_process: ProcessedFileSummary = Field(alias="fileProcess")
    records: list[RecordPayload] = Field(default_factory=list)
    total_records: int = Field(default=0, alias="totalRecords")


class UploadAcceptedResponse(_WireModel):
    queued: bool = True
    tracker_id: str = Field(alias="trackerId")
