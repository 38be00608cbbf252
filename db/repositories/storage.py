"""
Staging storage for uploaded CSV files awaiting ingestion.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Protocol

from db.repositories.errors import FileStorageError
from db.repositories.types import StagedUpload

_CHUNK_SIZE = 1024 * 1024


class StagingStorage(Protocol):
    """
    Storage backend holding uploads until their ingestion job releases them.
    """

    def stage(self, *, file_name: str, stream: BinaryIO) -> StagedUpload:
        ...

    def delete(self, *, storage_path: str) -> None:
        ...


def _sanitize_file_name(file_name: str) -> str:
    safe_name = Path(file_name).name.strip()
    if not safe_name:
        raise FileStorageError("Invalid file name.")
    return safe_name


class LocalStagingStorage:
    """
    Local filesystem staging directory.

    Staged paths are absolute so the worker can open them directly from the
    job envelope.
    """

    def __init__(self, root_dir: str | Path = "data/uploads") -> None:
        self._root_dir = Path(root_dir).resolve()

    def stage(self, *, file_name: str, stream: BinaryIO) -> StagedUpload:
        safe_file_name = _sanitize_file_name(file_name)
        stored_at = datetime.now(timezone.utc)

        target = self._root_dir / stored_at.strftime("%Y%m%d") / f"{uuid.uuid4().hex}_{safe_file_name}"
        target.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = target.with_suffix(f"{target.suffix}.tmp")
        size = 0
        try:
            with tmp_path.open("wb") as handle:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    handle.write(chunk)
                    size += len(chunk)
            tmp_path.replace(target)
        except OSError as exc:
            raise FileStorageError("Failed to write uploaded file to staging.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        return StagedUpload(
            file_name=safe_file_name,
            storage_path=str(target),
            file_size_bytes=size,
            stored_at=stored_at,
        )

    def delete(self, *, storage_path: str) -> None:
        target = Path(storage_path)
        if not target.exists():
            return
        try:
            target.unlink()
        except OSError as exc:
            raise FileStorageError("Failed to delete staged upload.") from exc
