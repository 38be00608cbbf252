"""
app/api/routers/ingestion.py

Upload, history and processed-record endpoints.
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool

from app.api.dependencies import get_csv_upload, get_uploader_email
from app.schemas.ingestion_events import UploadAcceptedResponse
from app.services.errors import IngestionError
from app.services.ingestion_intake_service import (
    IngestionIntakeService,
    get_ingestion_intake_service,
)
from db.repositories.errors import FileStorageError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingestion"])


@router.post("/api/upload")
async def upload_file(
    file: UploadFile = Depends(get_csv_upload),
    email: str = Depends(get_uploader_email),
    intake: IngestionIntakeService = Depends(get_ingestion_intake_service),
) -> dict:
    """
    Stage the uploaded CSV and queue it for background ingestion.
    """

    try:
        source_path = await run_in_threadpool(
            intake.stage_upload,
            file_name=file.filename or "upload.csv",
            stream=file.file,
        )
    except FileStorageError as exc:
        logger.error("Upload staging failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Upload failed",
        ) from exc
    finally:
        await file.close()

    try:
        job = await run_in_threadpool(intake.enqueue_file, source_path=source_path, owner_identity=email)
    except IngestionError as exc:
        logger.error("Enqueue failed for upload path=%s: %s", source_path, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=exc.user_message,
        ) from exc

    return UploadAcceptedResponse(tracker_id=str(job.id)).to_wire()


@router.get("/processed-file-data/{job_id}")
def get_processed_file_data(
    job_id: UUID,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=10, ge=1, le=500),
    intake: IngestionIntakeService = Depends(get_ingestion_intake_service),
) -> dict:
    data = intake.get_processed_file_data(job_id=job_id, skip=skip, limit=limit)
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="FileProcess not found",
        )
    return data.to_wire()


@router.get("/ingestion/history")
def get_history(
    owner: str = Query(..., min_length=1, description="Uploader identity"),
    intake: IngestionIntakeService = Depends(get_ingestion_intake_service),
) -> dict:
    return intake.get_history(owner_identity=owner).to_wire()
