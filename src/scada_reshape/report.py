"""Batch workbook writer — produces Batch_<N>_Extracted_SCADA_Tag_Data.xlsx."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet._write_only import WriteOnlyWorksheet

from scada_reshape import OUTPUT_HEADER
from scada_reshape.models import OutputRow, OutputTable

logger = logging.getLogger(__name__)

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

# Zone, Name of Station, Date, Time, SCADA Tag, Data
_COLUMN_WIDTHS = (10, 28, 12, 16, 30, 14)

# One row per sheet is taken by the header.
EXCEL_MAX_ROWS = 1_048_576
ROWS_PER_SHEET = EXCEL_MAX_ROWS - 1

_FORMULA_PREFIX = "="


# ── Naming ───────────────────────────────────────────────────────


def batch_filename(batch_number: int) -> str:
    return f"Batch_{batch_number}_Extracted_SCADA_Tag_Data.xlsx"


def batch_sheet_name(batch_number: int, part: int = 1) -> str:
    """``Batch_<N>`` for the first sheet, ``Batch_<N> (k)`` for overflow sheets."""
    base = f"Batch_{batch_number}"
    return base if part == 1 else f"{base} ({part})"


# ── Helpers ──────────────────────────────────────────────────────


def _header_cells(ws: WriteOnlyWorksheet) -> list[WriteOnlyCell]:
    cells = []
    for name in OUTPUT_HEADER:
        cell = WriteOnlyCell(ws, value=name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN
        cells.append(cell)
    return cells


def _excel_value(ws: WriteOnlyWorksheet, val: Any) -> Any:
    # openpyxl turns "=..." strings into formulas; keep them as text.
    if isinstance(val, str) and val.startswith(_FORMULA_PREFIX):
        cell = WriteOnlyCell(ws, value=val)
        cell.data_type = "s"
        return cell
    return val


def _new_sheet(wb: Workbook, batch_number: int, part: int) -> WriteOnlyWorksheet:
    ws = wb.create_sheet(title=batch_sheet_name(batch_number, part))
    for c_idx, width in enumerate(_COLUMN_WIDTHS, 1):
        ws.column_dimensions[get_column_letter(c_idx)].width = width
    ws.freeze_panes = "A2"
    ws.append(_header_cells(ws))
    return ws


def _chunks(rows: list[OutputRow], size: int) -> Iterator[list[OutputRow]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


# ── Public API ───────────────────────────────────────────────────


def write_batch_workbook(
    out_dir: Path,
    table: OutputTable,
    *,
    batch_number: int,
    rows_per_sheet: int = ROWS_PER_SHEET,
) -> Path:
    """Write *table* as ``Batch_<N>_Extracted_SCADA_Tag_Data.xlsx`` and return the path.

    Rows beyond *rows_per_sheet* continue on ``Batch_<N> (2)``, ``(3)``, …
    each carrying its own header row.
    """
    if rows_per_sheet < 1:
        raise ValueError("rows_per_sheet must be >= 1")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / batch_filename(batch_number)

    wb = Workbook(write_only=True)
    chunks = list(_chunks(table.rows, rows_per_sheet)) or [[]]
    for part, chunk in enumerate(chunks, 1):
        ws = _new_sheet(wb, batch_number, part)
        for row in chunk:
            ws.append([_excel_value(ws, val) for val in row])
    if len(chunks) > 1:
        logger.warning(
            "Batch %d has %d rows; split across %d sheets",
            batch_number, len(table), len(chunks),
        )

    tmp_path = out_dir / f"{report_path.stem}.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path


def read_batch_workbook(path: Path) -> list[OutputRow]:
    """Read every sheet of a batch workbook back into OutputRows, in order."""
    wb = load_workbook(Path(path), read_only=True)
    try:
        rows: list[OutputRow] = []
        for ws in wb.worksheets:
            ws.reset_dimensions()
            values = ws.iter_rows(min_row=1, values_only=True)
            header = next(values, None)
            if header is None:
                continue
            if list(header[: len(OUTPUT_HEADER)]) != OUTPUT_HEADER:
                raise ValueError(f"Sheet {ws.title!r} in {path} has an unexpected header")
            for row in values:
                rows.append(OutputRow(*row[: len(OUTPUT_HEADER)]))
        return rows
    finally:
        wb.close()
