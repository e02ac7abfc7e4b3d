"""Machine-readable record of a decode run."""

from __future__ import annotations

import hashlib
import sys
from datetime import datetime, timezone
from pathlib import Path

from gltf_draco import __version__
from gltf_draco.loader import DecompressionReport, PrimitiveOutcome
from gltf_draco.warning_policy import WarningPolicy


def _file_entry(path: Path) -> dict:
    """Path, size and SHA-256 digest of a file."""
    h = hashlib.sha256()
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
            size += len(chunk)
    return {"path": str(path), "bytes": size, "sha256": h.hexdigest()}


def _outcome_entry(outcome: PrimitiveOutcome) -> dict:
    entry: dict = {
        "mesh": outcome.location.mesh,
        "primitive": outcome.location.primitive,
        "status": "decoded" if outcome.decoded else "fallback",
    }
    if outcome.decoded:
        entry["attributes"] = list(outcome.attributes)
        entry["vertex_count"] = outcome.vertex_count
        entry["index_count"] = outcome.index_count
    return entry


def build_manifest(
    *,
    input_path: Path,
    output_path: Path,
    report: DecompressionReport,
    warning_policy: WarningPolicy | None = None,
    command_args: list[str] | None = None,
) -> dict:
    """Describe a decode run: both files, every Draco primitive and reclaimed space.

    Call after the output GLB has been written.
    """
    manifest: dict = {
        "manifest_version": 1,
        "tool": {
            "name": "gltf-draco",
            "version": __version__,
            "python": sys.version.split()[0],
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": _file_entry(input_path),
        "output": _file_entry(output_path),
        "primitives": {
            "compressed": report.compressed,
            "decoded": report.decoded,
            "outcomes": [_outcome_entry(o) for o in report.primitives],
        },
        "payload": {
            "dropped_views": report.dropped_views,
            "reclaimed_bytes": report.reclaimed_bytes,
        },
    }

    if warning_policy is not None:
        manifest["warning_policy"] = {
            "warn_as_error": sorted(warning_policy.warn_as_error),
            "suppress": sorted(warning_policy.suppress),
        }
    if command_args is not None:
        manifest["command_args"] = command_args

    return manifest
