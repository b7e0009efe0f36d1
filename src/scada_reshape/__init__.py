"""scada-reshape — Reshape fixed-layout SCADA exports into long-format tables."""

__version__ = "0.2.0"

OUTPUT_HEADER: list[str] = ["Zone", "Name of Station", "Date", "Time", "SCADA Tag", "Data"]

# Fixed input layout (0-based rows, A1-style cells)
TAG_ROW = 2
STATION_CELL = "A1"
DATE_CELL = "B6"
DATA_START_ROW = 6
READINGS_PER_DAY = 1440

BATCH_SIZE = 50
DUMMY_MARKER = "DUMMY"
MISSING = "N/A"
SPREADSHEET_SUFFIXES: tuple[str, ...] = (".xls", ".xlsx")
