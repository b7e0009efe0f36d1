"""Extraction + reshape pipeline — per-file transform, batching, folder runs."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from datetime import date, datetime
from functools import lru_cache
from numbers import Real
from pathlib import Path
from typing import Any, Literal

import pandas as pd
from openpyxl.utils.datetime import from_excel

from scada_reshape import (
    BATCH_SIZE,
    DATA_START_ROW,
    DATE_CELL,
    DUMMY_MARKER,
    MISSING,
    READINGS_PER_DAY,
    SPREADSHEET_SUFFIXES,
    STATION_CELL,
    TAG_ROW,
)
from scada_reshape.io import DirectoryReadError, FileLoadError, SheetGrid, list_folder, load_sheet
from scada_reshape.models import BatchResult, OutputRow, OutputTable, ZoneReport
from scada_reshape.report import write_batch_workbook
from scada_reshape.manifest import sha256_file

logger = logging.getLogger(__name__)

LoadErrorPolicy = Literal["abort", "skip"]
_MINUTES_PER_DAY = 24 * 60


# ── Time intervals ──────────────────────────────────────────────


def _clock(minute: int) -> str:
    minute %= _MINUTES_PER_DAY
    return f"{minute // 60:02d}:{minute % 60:02d}"


@lru_cache(maxsize=None)
def _intervals(count: int) -> tuple[str, ...]:
    return tuple(f"{_clock(i)} - {_clock(i + 1)}" for i in range(count))


def generate_time_intervals(count: int = READINGS_PER_DAY) -> list[str]:
    """Return *count* one-minute ``"HH:MM - HH:MM"`` labels starting at midnight.

    Labels wrap on the clock face, so entry 1439 is ``"23:59 - 00:00"``.
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    return list(_intervals(count))


# ── Cell extraction ─────────────────────────────────────────────


def extract_row_values(sheet: SheetGrid, row: int) -> list[tuple[str, int]]:
    """Return ``(value, col)`` for every usable tag header in *row*.

    A cell qualifies when it holds a non-empty string that does not contain
    the ``DUMMY`` marker. Results are ordered by column.
    """
    values: list[tuple[str, int]] = []
    for col in sheet.column_range:
        value = sheet.cell(row, col)
        if isinstance(value, str) and value and DUMMY_MARKER not in value:
            values.append((value, col))
    return values


def extract_column_data(sheet: SheetGrid, col: int, start_row: int, count: int) -> list[Any]:
    """Return exactly *count* values from *col*, starting at *start_row*.

    Absent cells read as ``"N/A"``; reading past the used range is allowed.
    """
    data: list[Any] = []
    for row in range(start_row, start_row + count):
        value = sheet.cell(row, col)
        data.append(MISSING if value is None else value)
    return data


def format_date_value(value: Any, *, epoch: datetime | None = None) -> Any:
    """Render a date cell as ``yyyy-mm-dd``.

    Numeric values are spreadsheet serial dates; ``date``/``datetime`` values
    are formatted directly. Anything else (text, ``None``) passes through,
    with ``None`` becoming ``"N/A"``.
    """
    if value is None:
        return MISSING
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, Real) and not isinstance(value, bool):
        if math.isnan(float(value)):
            return value
        kwargs = {"epoch": epoch} if epoch is not None else {}
        try:
            converted = from_excel(value, **kwargs)
        except (OverflowError, ValueError):
            return value
        if isinstance(converted, (datetime, date)):
            return converted.strftime("%Y-%m-%d")
        return value
    return value


# ── Per-file transform ──────────────────────────────────────────


def transform_file(
    path: Path,
    table: OutputTable,
    *,
    zone: str,
    intervals: Sequence[str] | None = None,
) -> int:
    """Append every reading of the workbook at *path* to *table*.

    Rows are appended tag by tag (header order), then minute by minute.
    Returns the number of rows appended.

    Raises
    ------
    FileLoadError
        If *path* cannot be read; *table* is left unchanged.
    """
    if intervals is None:
        intervals = generate_time_intervals(READINGS_PER_DAY)
    sheet = load_sheet(path)

    tags = extract_row_values(sheet, TAG_ROW)
    logger.info("Tags in %s (excluding %s): %s", path, DUMMY_MARKER, tags)

    station = sheet.cell_at(STATION_CELL)
    station = MISSING if station is None else station
    day = format_date_value(sheet.cell_at(DATE_CELL), epoch=sheet.epoch)

    rows: list[OutputRow] = []
    for tag, col in tags:
        readings = extract_column_data(sheet, col, DATA_START_ROW, len(intervals))
        rows.extend(
            OutputRow(zone, station, day, interval, tag, reading)
            for interval, reading in zip(intervals, readings)
        )
    table.extend(rows)
    return len(rows)


# ── QC summary ──────────────────────────────────────────────────


def summarize_table(table: OutputTable) -> pd.DataFrame:
    """Per-tag reading counts for *table*, in first-seen tag order.

    ``missing`` counts readings equal to the ``"N/A"`` fill value. An input cell
    that itself holds the text ``"N/A"`` is indistinguishable from an absent
    cell once reshaped, so it is counted as missing too.
    """
    if len(table) == 0:
        return pd.DataFrame(columns=["tag", "readings", "missing"])
    df = table.to_frame()
    df["is_missing"] = df["Data"].map(lambda v: isinstance(v, str) and v == MISSING)
    return (
        df.groupby("SCADA Tag", sort=False, as_index=False)
        .agg(readings=("Data", "size"), missing=("is_missing", "sum"))
        .rename(columns={"SCADA Tag": "tag"})
        .astype({"readings": "int64", "missing": "int64"})
    )


# ── Batching ────────────────────────────────────────────────────


def partition_batches(files: Sequence[str], batch_size: int = BATCH_SIZE) -> list[list[str]]:
    """Split *files* into consecutive slices of at most *batch_size*."""
    if isinstance(batch_size, bool) or batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    count = math.ceil(len(files) / batch_size)
    return [list(files[i * batch_size:(i + 1) * batch_size]) for i in range(count)]


def is_spreadsheet(name: str) -> bool:
    return Path(name).suffix in SPREADSHEET_SUFFIXES


def write_batches(
    files: Sequence[str],
    input_folder: Path,
    output_folder: Path,
    *,
    zone: str,
    batch_size: int = BATCH_SIZE,
    on_load_error: LoadErrorPolicy = "abort",
    table: OutputTable | None = None,
    results: list[BatchResult] | None = None,
) -> list[BatchResult]:
    """Transform *files* batch by batch, writing one workbook per batch.

    *table* is reset to header-only at the start of every batch. Files without a
    spreadsheet extension are skipped. With ``on_load_error="skip"`` an
    unreadable file is logged and left out; with ``"abort"`` the
    :class:`FileLoadError` propagates.

    Each finished batch is appended to *results* (a new list if omitted) as soon
    as its workbook is saved, so a caller holding the list still sees the
    batches already written when a later batch aborts.
    """
    if on_load_error not in {"abort", "skip"}:
        raise ValueError(f"Invalid load-error policy: {on_load_error!r}. Use abort/skip.")

    input_folder = Path(input_folder)
    output_folder = Path(output_folder)
    intervals = generate_time_intervals(READINGS_PER_DAY)
    if table is None:
        table = OutputTable()
    if results is None:
        results = []

    for batch_index, batch in enumerate(partition_batches(files, batch_size)):
        batch_number = batch_index + 1
        table.reset()
        processed: list[str] = []
        skipped: list[str] = []
        failed: list[str] = []

        for name in batch:
            if not is_spreadsheet(name):
                logger.debug("Skipping %s (not a spreadsheet)", name)
                skipped.append(name)
                continue
            try:
                transform_file(input_folder / name, table, zone=zone, intervals=intervals)
            except FileLoadError as exc:
                if on_load_error == "abort":
                    raise
                logger.error("Skipping unreadable file %s: %s", input_folder / name, exc)
                failed.append(name)
                continue
            processed.append(name)

        summary = summarize_table(table)
        path = write_batch_workbook(output_folder, table, batch_number=batch_number)
        logger.info(
            "Batch %d SCADA Tag data has been successfully written to %s",
            batch_number, path,
        )
        results.append(
            BatchResult(
                batch_number=batch_number,
                output_path=str(path),
                files_processed=processed,
                files_skipped=skipped,
                files_failed=failed,
                rows=len(table),
                missing_readings=int(summary["missing"].sum()),
                sha256=sha256_file(path),
            )
        )
    return results


# ── Folders ─────────────────────────────────────────────────────


def derive_zone(folder: Path | str) -> str:
    """Return the part of the folder's base name before the first ``_``."""
    return Path(folder).name.split("_", 1)[0]


def process_folder(
    input_folder: Path,
    output_folder: Path,
    *,
    batch_size: int = BATCH_SIZE,
    on_load_error: LoadErrorPolicy = "abort",
) -> ZoneReport:
    """Run every batch of one zone folder and report the outcome.

    Unreadable folders and (under ``"abort"``) unreadable files mark the zone
    as failed instead of raising. Batches written before a failure stay
    on the report.
    """
    input_folder = Path(input_folder)
    output_folder = Path(output_folder)
    report = ZoneReport(
        zone=derive_zone(input_folder),
        input_folder=str(input_folder),
        output_folder=str(output_folder),
    )
    try:
        files = list_folder(input_folder)
        write_batches(
            files,
            input_folder,
            output_folder,
            zone=report.zone,
            batch_size=batch_size,
            on_load_error=on_load_error,
            results=report.batches,
        )
    except DirectoryReadError as exc:
        logger.error("Error reading the folder %s: %s", input_folder, exc)
        report.status = "failed"
        report.error_message = str(exc)
    except FileLoadError as exc:
        logger.error("Aborting zone %s: %s", report.zone, exc)
        report.status = "failed"
        report.error_message = str(exc)
    except OSError as exc:
        logger.error("Could not write output for zone %s: %s", report.zone, exc)
        report.status = "failed"
        report.error_message = str(exc)
    return report


def process_folders(
    input_folders: Sequence[Path],
    output_folders: Sequence[Path],
    *,
    batch_size: int = BATCH_SIZE,
    on_load_error: LoadErrorPolicy = "abort",
) -> list[ZoneReport]:
    """Process each (input, output) folder pair and return one report per pair.

    Folders are independent: every pair runs to completion (or failure)
    before this returns, and a failed folder never stops the rest.
    """
    if len(input_folders) != len(output_folders):
        raise ValueError(
            f"Got {len(input_folders)} input folders but {len(output_folders)} output folders"
        )
    if isinstance(batch_size, bool) or batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    reports: list[ZoneReport] = []
    for input_folder, output_folder in zip(input_folders, output_folders):
        reports.append(
            process_folder(
                input_folder,
                output_folder,
                batch_size=batch_size,
                on_load_error=on_load_error,
            )
        )
    return reports
