"""Run manifest persistence — hashes, timestamps, run_manifest.json."""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path

from scada_reshape import __version__
from scada_reshape.io import write_json
from scada_reshape.models import RunManifest, ZoneReport

MANIFEST_NAME = "run_manifest.json"


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def write_run_manifest(
    report: ZoneReport,
    *,
    batch_size: int,
    on_load_error: str,
    created_at: str | None = None,
) -> Path:
    """Write ``run_manifest.json`` into the zone's output folder and return the path."""
    manifest = RunManifest(
        version=__version__,
        created_at_utc=created_at or utcnow_iso(),
        batch_size=batch_size,
        on_load_error=on_load_error,
        zone=report,
    )
    return write_json(Path(report.output_folder) / MANIFEST_NAME, manifest.to_dict())
