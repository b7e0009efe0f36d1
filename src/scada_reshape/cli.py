"""CLI entry point for scada-reshape."""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table as RichTable

from scada_reshape import (
    BATCH_SIZE,
    DATA_START_ROW,
    DATE_CELL,
    MISSING,
    STATION_CELL,
    TAG_ROW,
    __version__,
)
from scada_reshape.io import FileLoadError, load_sheet
from scada_reshape.manifest import utcnow_iso, write_run_manifest
from scada_reshape.models import ZoneReport
from scada_reshape.pipeline import (
    extract_column_data,
    extract_row_values,
    format_date_value,
    process_folders,
)

app = typer.Typer(
    name="scada-reshape",
    help="scada-reshape — Reshape SCADA tag exports into long-format batch workbooks.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class LoadErrorOption(str, Enum):
    abort = "abort"
    skip = "skip"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"scada-reshape v{__version__}")
        raise typer.Exit()


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    pkg_logger = logging.getLogger("scada_reshape")
    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)


def _load_folder_pairs(folders_file: Path | None) -> list[tuple[Path, Path]]:
    """Return ``(input, output)`` pairs from an ``input=output`` lines file.

    Relative paths resolve against the file's own directory.
    """
    if not folders_file:
        return []
    if not folders_file.exists():
        raise ValueError(
            f"Folders file not found: {folders_file} (expected lines like BGM_testing=output_BGM)"
        )
    if folders_file.is_dir():
        raise ValueError(f"Folders file is a directory, not a file: {folders_file}")
    try:
        text = folders_file.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read folders file {folders_file}: {exc}") from exc

    base = folders_file.parent
    pairs: list[tuple[Path, Path]] = []
    for lineno, line in enumerate(text.splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(
                f"Expected input=output, got {stripped!r} ({folders_file}:{lineno})"
            )
        source, target = (part.strip() for part in stripped.split("=", 1))
        if not source or not target:
            raise ValueError(
                f"Empty input or output folder in {stripped!r} ({folders_file}:{lineno})"
            )
        pairs.append((base / source, base / target))
    return pairs


def _zone_summary_table(reports: list[ZoneReport]) -> RichTable:
    tbl = RichTable(title="Run Summary", show_lines=True)
    tbl.add_column("Zone", style="bold")
    tbl.add_column("Batches", justify="right")
    tbl.add_column("Files", justify="right")
    tbl.add_column("Rows", justify="right")
    tbl.add_column("Status")
    for report in reports:
        files = sum(len(batch.files_processed) for batch in report.batches)
        status = "[green]OK[/green]" if report.ok else f"[red]FAIL[/red] {report.error_message}"
        tbl.add_row(report.zone, str(len(report.batches)), str(files), str(report.rows), status)
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """scada-reshape CLI."""


# ── run command ──────────────────────────────────────────────────


@app.command()
def run(
    input_folders: list[Path] | None = typer.Option(
        None, "--input", "-i",
        help="Zone input folder (repeatable; paired with --output by position).",
    ),
    output_folders: list[Path] | None = typer.Option(
        None, "--output", "-o",
        help="Output folder for the matching --input (repeatable).",
    ),
    folders_file: Path | None = typer.Option(
        None, "--folders",
        help="File of input=output folder lines, processed after --input/--output pairs.",
    ),
    batch_size: int = typer.Option(
        BATCH_SIZE, "--batch-size",
        min=1,
        help="Maximum number of input files per output workbook.",
    ),
    on_load_error: LoadErrorOption = typer.Option(
        LoadErrorOption.abort,
        "--on-load-error",
        help="abort: an unreadable workbook fails its zone; skip: log it and carry on.",
    ),
    manifest: bool = typer.Option(
        True, "--manifest/--no-manifest",
        help="Write run_manifest.json into each zone's output folder.",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log skipped files and load details.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Only report warnings and errors; still writes all workbooks.",
    ),
) -> None:
    """Reshape every zone folder into Batch_<N>_Extracted_SCADA_Tag_Data.xlsx files."""
    _configure_logging(verbose=verbose, quiet=quiet)
    echo = _printer(quiet)
    created_at = utcnow_iso()

    inputs = list(input_folders or [])
    outputs = list(output_folders or [])
    if len(inputs) != len(outputs):
        _err(f"Got {len(inputs)} --input folders but {len(outputs)} --output folders")
        raise typer.Exit(code=2)
    try:
        pairs = list(zip(inputs, outputs)) + _load_folder_pairs(folders_file)
    except ValueError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)
    if not pairs:
        _err("No folders to process. Use --input/--output or --folders.")
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]scada-reshape[/bold] v{__version__}\n"
            f"Zones: {len(pairs)}  Batch size: {batch_size}  "
            f"On load error: {on_load_error.value}",
            title="Pipeline Start", border_style="blue",
        ))

    reports = process_folders(
        [source for source, _ in pairs],
        [target for _, target in pairs],
        batch_size=batch_size,
        on_load_error=on_load_error.value,
    )

    if manifest:
        for report in reports:
            if not report.batches:
                continue
            manifest_path = write_run_manifest(
                report,
                batch_size=batch_size,
                on_load_error=on_load_error.value,
                created_at=created_at,
            )
            echo(f"  Manifest -> {manifest_path}")

    failed = [report for report in reports if not report.ok]
    if not quiet:
        console.print(_zone_summary_table(reports))
    if failed:
        for report in failed:
            _err(f"Zone {report.zone} failed: {report.error_message}")
        raise typer.Exit(code=1)

    if not quiet:
        total_rows = sum(report.rows for report in reports)
        console.print(Panel(
            f"[green]Done[/green] — {total_rows} rows across {len(reports)} zone(s)",
            title="Pipeline Complete", border_style="green",
        ))


# ── tags command ─────────────────────────────────────────────────


@app.command()
def tags(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to one SCADA export (.xls or .xlsx).",
        exists=True, readable=True, dir_okay=False,
    ),
) -> None:
    """Show the station, date and SCADA tags found in one export.

    Exit 0 = readable, exit 2 = the workbook could not be loaded.
    """
    try:
        sheet = load_sheet(input_file)
    except FileLoadError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    station = sheet.cell_at(STATION_CELL)
    day = format_date_value(sheet.cell_at(DATE_CELL), epoch=sheet.epoch)
    found = extract_row_values(sheet, TAG_ROW)

    tbl = RichTable(title=f"SCADA Tags — {escape(input_file.name)}", show_lines=False)
    tbl.add_column("Column", justify="right")
    tbl.add_column("Tag", style="bold")
    tbl.add_column("First reading")
    for tag, col in found:
        first = extract_column_data(sheet, col, DATA_START_ROW, 1)[0]
        tbl.add_row(str(col), escape(tag), escape(str(first)))

    console.print(f"  Station: {escape(MISSING if station is None else str(station))}")
    console.print(f"  Date:    {escape(str(day))}")
    console.print(tbl)
    console.print(f"  {len(found)} tag(s)")
