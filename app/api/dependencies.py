"""
app/api/dependencies.py

Shared FastAPI dependencies for upload validation.
"""

from __future__ import annotations

from fastapi import File, Form, HTTPException, UploadFile, status

CSV_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",
}


def get_csv_upload(file: UploadFile | None = File(default=None)) -> UploadFile:
    """
    Require an uploaded file that is a CSV by extension or MIME type.
    """

    if file is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File not received",
        )

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()
    if not filename.endswith(".csv") and content_type not in CSV_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )

    return file


def get_uploader_email(email: str | None = Form(default=None)) -> str:
    """
    Owner identity of the upload; used as the broadcast routing key.
    """

    value = (email or "").strip()
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is required",
        )
    return value
