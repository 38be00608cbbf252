"""
app/services/csv_stream.py

Lazy row iteration over a staged CSV file.

Each call opens its own stream; the counting pass and the ingestion pass are
two independent iterations and nothing is materialized.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from app.services.errors import SourceFileError

# csv.DictReader stores surplus values under this key.
EXTRA_VALUES_KEY = "_extra"

_INT_PATTERN = re.compile(r"^-?(0|[1-9][0-9]*)$")
_FLOAT_PATTERN = re.compile(r"^-?(0|[1-9][0-9]*)\.[0-9]+$")


class MalformedRowError(ValueError):
    """
    Raised when a row does not line up with the header.
    """


def iter_rows(path: str | Path) -> Iterator[dict[str | None, Any]]:
    """
    Yield one mapping per data row, header excluded.

    Read and parse failures are raised as SourceFileError.
    """

    try:
        with Path(path).open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle, restkey=None)
            yield from reader
    except UnicodeDecodeError as exc:
        raise SourceFileError("CSV must be UTF-8 encoded.") from exc
    except csv.Error as exc:
        raise SourceFileError(f"Invalid CSV format: {exc}") from exc
    except OSError as exc:
        raise SourceFileError(f"Unable to read CSV file: {exc}") from exc


def count_rows(path: str | Path) -> int:
    """
    Full streaming pass that only counts data rows.
    """

    count = 0
    for _ in iter_rows(path):
        count += 1
    return count


def coerce_scalar(value: str | None, *, infer_numbers: bool) -> str | int | float | None:
    if value is None:
        return None
    if not infer_numbers:
        return value
    text = value.strip()
    if _INT_PATTERN.match(text):
        return int(text)
    if _FLOAT_PATTERN.match(text):
        return float(text)
    return value


def build_record_payload(row: dict[str | None, Any], *, infer_numbers: bool = False) -> dict[str, Any]:
    """
    Convert a parsed row into the stored column -> scalar mapping.

    Raises MalformedRowError when the row has more values than the header.
    Missing trailing values are kept as null.
    """

    extras = row.get(None)
    if extras:
        raise MalformedRowError(f"Row has {len(extras)} more value(s) than header columns.")
    return {
        str(column): coerce_scalar(value, infer_numbers=infer_numbers)
        for column, value in row.items()
        if column is not None
    }


def raw_record_payload(row: dict[str | None, Any]) -> dict[str, Any]:
    """
    Best-effort payload for a failed row, surplus values kept under `_extra`.
    """

    payload: dict[str, Any] = {str(column): value for column, value in row.items() if column is not None}
    extras = row.get(None)
    if extras:
        payload[EXTRA_VALUES_KEY] = list(extras)
    return payload
