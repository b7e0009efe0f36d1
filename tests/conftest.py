from __future__ import annotations

import zipfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

# Excel serial for 2024-01-15.
SERIAL_2024_01_15 = 45306

ExportFactory = Callable[..., Path]


def write_export(
    path: Path,
    *,
    tags: Sequence[Any],
    columns: Sequence[Sequence[Any]] = (),
    station: Any = "Alpha",
    date: Any = SERIAL_2024_01_15,
) -> Path:
    """Write a workbook in the SCADA export layout.

    Row 1 holds the station in A1, row 3 the tag headers from column A,
    B6 the date, and readings start on row 7 (one list per tag column).
    """
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    if station is not None:
        ws["A1"] = station
    for c_idx, tag in enumerate(tags, 1):
        ws.cell(row=3, column=c_idx, value=tag)
    if date is not None:
        ws["B6"] = date
    for c_idx, values in enumerate(columns, 1):
        for r_offset, value in enumerate(values):
            ws.cell(row=7 + r_offset, column=c_idx, value=value)
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def truncate_sheet_xml(path: Path, member: str = "xl/worksheets/sheet1.xml") -> Path:
    """Cut *member* of an .xlsx package in half, leaving the zip itself valid."""
    with zipfile.ZipFile(path) as src:
        parts = {info.filename: src.read(info.filename) for info in src.infolist()}
    parts[member] = parts[member][: len(parts[member]) // 2]
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as dst:
        for name, data in parts.items():
            dst.writestr(name, data)
    return path


@pytest.fixture
def make_export(tmp_path: Path) -> ExportFactory:
    def _make(name: str = "station.xlsx", **kwargs: Any) -> Path:
        return write_export(tmp_path / name, **kwargs)

    return _make
