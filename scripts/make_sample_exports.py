#!/usr/bin/env python3
"""Build deterministic SCADA export folders for trying scada-reshape locally."""

from __future__ import annotations

import argparse
import math
from datetime import date
from pathlib import Path

from openpyxl import Workbook

ZONES = ("BGM", "BGK")
TAGS = ("FLOW_RATE", "INLET_PRESSURE", "SPARE_DUMMY_1", "OUTLET_PRESSURE")
EXCEL_EPOCH = date(1899, 12, 30)
MINUTES_PER_DAY = 1440


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _serial(day: date) -> int:
    return (day - EXCEL_EPOCH).days


def _reading(station: int, tag: int, minute: int) -> float | None:
    # A short outage every 6 hours leaves blank cells.
    if minute % 360 < 3 and tag == 0:
        return None
    wave = math.sin((minute + 60 * station) / MINUTES_PER_DAY * 2 * math.pi)
    return round(50 + 10 * tag + 5 * wave, 3)


def write_station(path: Path, *, zone: str, station: int, day: date) -> Path:
    wb = Workbook()
    ws = wb.active
    assert ws is not None
    ws.title = "Export"
    ws["A1"] = f"{zone} Station {station:02d}"
    ws["A2"] = "Minute log"
    for c_idx, tag in enumerate(TAGS, 1):
        ws.cell(row=3, column=c_idx, value=f"{zone}_{tag}")
    ws["A6"] = "Date"
    ws["B6"] = _serial(day)
    for minute in range(MINUTES_PER_DAY):
        for c_idx in range(1, len(TAGS) + 1):
            ws.cell(row=7 + minute, column=c_idx, value=_reading(station, c_idx - 1, minute))
    path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(path)
    return path


def build_sample_exports(
    out_dir: Path,
    *,
    stations: int = 3,
    day: date = date(2024, 1, 15),
) -> Path:
    """Write ``<ZONE>_testing`` folders plus a ``folders.txt`` into *out_dir*."""
    out_dir = out_dir.resolve()
    lines = ["# input=output, relative to this file"]
    for zone in ZONES:
        folder = out_dir / f"{zone}_testing"
        for station in range(1, stations + 1):
            write_station(folder / f"station_{station:02d}.xlsx", zone=zone, station=station, day=day)
        (folder / "README.txt").write_text("Not a spreadsheet; skipped.\n", encoding="utf-8")
        lines.append(f"{zone}_testing=output_{zone}")
    folders_file = out_dir / "folders.txt"
    folders_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return folders_file


def main() -> None:
    parser = argparse.ArgumentParser(description="Build sample SCADA export folders")
    parser.add_argument(
        "--output",
        type=Path,
        default=_repo_root() / "demo",
        help="Directory that receives the zone folders and folders.txt.",
    )
    parser.add_argument(
        "--stations",
        type=int,
        default=3,
        help="Station workbooks per zone.",
    )
    args = parser.parse_args()

    folders_file = build_sample_exports(args.output, stations=args.stations)
    print(f"Sample exports -> {folders_file.parent}")
    print(f"Run: scada-reshape run --folders {folders_file}")


if __name__ == "__main__":
    main()
