"""
Content fingerprint used to detect duplicate uploads.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def fingerprint_file(path: str | Path) -> str:
    """
    Return the sha256 hex digest of a file, read in fixed-size chunks.

    OSError propagates when the file cannot be read.
    """

    digest = hashlib.sha256()
    with Path(path).open("rb") as handle:
        while True:
            chunk = handle.read(_CHUNK_SIZE)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()
