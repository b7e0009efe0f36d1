"""I/O helpers — load input workbooks, list zone folders, write JSON artifacts."""

from __future__ import annotations

import json
import logging
import struct
import zlib
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zipfile import BadZipFile

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.cell import coordinate_from_string, column_index_from_string
from openpyxl.utils.datetime import MAC_EPOCH, WINDOWS_EPOCH
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.compdoc import CompDocError

logger = logging.getLogger(__name__)

# What openpyxl and xlrd raise on damaged packages. SyntaxError covers the
# ParseError of both ElementTree and lxml for truncated sheet XML.
_PARSE_ERRORS = (
    InvalidFileException,
    BadZipFile,
    SyntaxError,
    zlib.error,
    struct.error,
    EOFError,
    KeyError,
    IndexError,
    TypeError,
    AttributeError,
    ValueError,
    OSError,
)


class FileLoadError(ValueError):
    """An input file could not be parsed as a spreadsheet."""


class DirectoryReadError(OSError):
    """An input folder could not be listed."""


# ── Worksheet model ──────────────────────────────────────────────


@dataclass
class SheetGrid:
    """Sparse, 0-indexed view of a worksheet's populated cells.

    A cell is present only when it holds a value; blank cells are absent.
    ``epoch`` is the workbook's date system, used to decode serial dates.
    """

    cells: dict[tuple[int, int], Any] = field(default_factory=dict)
    epoch: datetime = WINDOWS_EPOCH
    name: str = ""

    def cell(self, row: int, col: int) -> Any | None:
        return self.cells.get((row, col))

    def has_cell(self, row: int, col: int) -> bool:
        return (row, col) in self.cells

    def cell_at(self, coordinate: str) -> Any | None:
        """Return the value at an A1-style *coordinate*, or ``None``."""
        letters, row = coordinate_from_string(coordinate)
        return self.cell(row - 1, column_index_from_string(letters) - 1)

    @property
    def column_range(self) -> range:
        """Columns spanned by the used range (empty when the sheet is)."""
        if not self.cells:
            return range(0)
        cols = [col for _row, col in self.cells]
        return range(min(cols), max(cols) + 1)

    @property
    def row_range(self) -> range:
        if not self.cells:
            return range(0)
        rows = [row for row, _col in self.cells]
        return range(min(rows), max(rows) + 1)


# ── Loading ──────────────────────────────────────────────────────


def _load_xlsx(path: Path) -> SheetGrid:
    wb = load_workbook(path, data_only=True)
    try:
        ws = wb.worksheets[0]
        grid = SheetGrid(epoch=wb.epoch, name=ws.title)
        for r_idx, row in enumerate(ws.iter_rows(min_row=1, min_col=1, values_only=True)):
            for c_idx, value in enumerate(row):
                if value is not None:
                    grid.cells[(r_idx, c_idx)] = value
        return grid
    finally:
        wb.close()


def _xls_value(sheet: Any, row: int, col: int) -> Any | None:
    ctype = sheet.cell_type(row, col)
    if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    value = sheet.cell_value(row, col)
    if ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(value)
    if ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(value, "#N/A")
    if ctype == xlrd.XL_CELL_TEXT and value == "":
        return None
    return value


def _load_xls(path: Path) -> SheetGrid:
    book = xlrd.open_workbook(str(path), on_demand=True)
    try:
        sheet = book.sheet_by_index(0)
        epoch = MAC_EPOCH if book.datemode == 1 else WINDOWS_EPOCH
        grid = SheetGrid(epoch=epoch, name=sheet.name)
        for r_idx in range(sheet.nrows):
            for c_idx in range(sheet.ncols):
                value = _xls_value(sheet, r_idx, c_idx)
                if value is not None:
                    grid.cells[(r_idx, c_idx)] = value
        return grid
    finally:
        book.release_resources()


def load_sheet(path: Path) -> SheetGrid:
    """Load the first worksheet of an ``.xlsx`` or ``.xls`` workbook.

    Raises
    ------
    FileLoadError
        If *path* is missing, is not a file, or cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise FileLoadError(f"Input file not found: {path}")
    if not path.is_file():
        raise FileLoadError(f"Input path is not a file: {path}")

    suffix = path.suffix.lower()
    try:
        grid = _load_xls(path) if suffix == ".xls" else _load_xlsx(path)
    except (xlrd.XLRDError, CompDocError) as exc:
        raise FileLoadError(f"Could not read workbook {path} ({exc})") from exc
    except _PARSE_ERRORS as exc:
        raise FileLoadError(f"Could not read workbook {path} ({exc})") from exc

    logger.debug("Loaded %s: sheet %r, %d populated cells", path, grid.name, len(grid.cells))
    return grid


# ── Folders ──────────────────────────────────────────────────────


def list_folder(folder: Path) -> list[str]:
    """Return the entry names of *folder* in alphabetic order.

    Raises
    ------
    DirectoryReadError
        If *folder* does not exist or cannot be listed.
    """
    folder = Path(folder)
    try:
        return sorted(entry.name for entry in folder.iterdir())
    except OSError as exc:
        raise DirectoryReadError(f"Cannot read folder {folder}: {exc}") from exc


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path
