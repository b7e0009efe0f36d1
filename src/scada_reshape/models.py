"""Data models used across the package."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from numbers import Integral
from typing import Any, NamedTuple

import pandas as pd

from scada_reshape import OUTPUT_HEADER


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


class OutputRow(NamedTuple):
    """One long-format record: a single reading of one tag at one minute."""

    zone: str
    station: Any
    date: Any
    time: str
    tag: str
    data: Any


class OutputTable:
    """Row accumulator owned by exactly one batch.

    The header is implicit: ``rows`` holds data rows only and
    ``to_rows()`` prepends :data:`OUTPUT_HEADER`.
    """

    def __init__(self, rows: Iterable[OutputRow] | None = None) -> None:
        self._rows: list[OutputRow] = list(rows) if rows is not None else []

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> list[OutputRow]:
        return self._rows

    @property
    def header(self) -> list[str]:
        return list(OUTPUT_HEADER)

    def reset(self) -> None:
        """Drop every data row, leaving the table header-only."""
        self._rows = []

    def append(self, row: OutputRow) -> None:
        self._rows.append(row)

    def extend(self, rows: Iterable[OutputRow]) -> None:
        self._rows.extend(rows)

    def to_rows(self) -> list[list[Any]]:
        return [self.header, *(list(row) for row in self._rows)]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [tuple(row) for row in self._rows], columns=OUTPUT_HEADER, dtype=object
        )


@dataclass
class BatchResult:
    """Outcome of writing one batch workbook."""

    batch_number: int
    output_path: str = ""
    files_processed: list[str] = field(default_factory=list)
    files_skipped: list[str] = field(default_factory=list)
    files_failed: list[str] = field(default_factory=list)
    rows: int = 0
    missing_readings: int = 0
    sha256: str = ""

    def __post_init__(self) -> None:
        self.batch_number = _to_non_negative_int(self.batch_number, "batch_number")
        if self.batch_number < 1:
            raise ValueError("batch_number must be >= 1")
        self.files_processed = _to_string_list(self.files_processed, "files_processed")
        self.files_skipped = _to_string_list(self.files_skipped, "files_skipped")
        self.files_failed = _to_string_list(self.files_failed, "files_failed")
        self.rows = _to_non_negative_int(self.rows, "rows")
        self.missing_readings = _to_non_negative_int(self.missing_readings, "missing_readings")
        if self.missing_readings > self.rows:
            raise ValueError("missing_readings must be <= rows")

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_number": self.batch_number,
            "output_path": self.output_path,
            "files_processed": list(self.files_processed),
            "files_skipped": list(self.files_skipped),
            "files_failed": list(self.files_failed),
            "rows": self.rows,
            "missing_readings": self.missing_readings,
            "sha256": self.sha256,
        }


@dataclass
class ZoneReport:
    """Outcome of processing one input folder."""

    zone: str
    input_folder: str = ""
    output_folder: str = ""
    status: str = "success"
    error_message: str = ""
    batches: list[BatchResult] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.status not in {"success", "failed"}:
            raise ValueError(f"Invalid status: {self.status!r}. Use success/failed.")

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def rows(self) -> int:
        return sum(batch.rows for batch in self.batches)

    def to_dict(self) -> dict[str, Any]:
        return {
            "zone": self.zone,
            "input_folder": self.input_folder,
            "output_folder": self.output_folder,
            "status": self.status,
            "error_message": self.error_message,
            "rows": self.rows,
            "batches": [batch.to_dict() for batch in self.batches],
        }


@dataclass
class RunManifest:
    """Audit-trail manifest written beside a zone's batch workbooks."""

    tool: str = "scada-reshape"
    version: str = ""
    created_at_utc: str = ""
    batch_size: int = 0
    on_load_error: str = "abort"
    zone: ZoneReport | None = None

    def __post_init__(self) -> None:
        self.batch_size = _to_non_negative_int(self.batch_size, "batch_size")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "created_at_utc": self.created_at_utc,
            "batch_size": self.batch_size,
            "on_load_error": self.on_load_error,
            "zone": self.zone.to_dict() if self.zone is not None else None,
        }
