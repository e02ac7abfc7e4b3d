"""Click CLI entry point for gltf-draco."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from gltf_draco import __version__
from gltf_draco.errors import DracoGltfError
from gltf_draco.inspection import inspect_document, render_text
from gltf_draco.loader import decompress_gltf, load_document, save_glb
from gltf_draco.manifest import build_manifest
from gltf_draco.warning_policy import WarningPolicy


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    try:
        return WarningPolicy.from_options(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _default_output(input_file: Path) -> Path:
    """model.gltf / model.glb -> model.decoded.glb"""
    return input_file.parent / f"{input_file.stem}.decoded.glb"


@click.group()
@click.version_option(version=__version__, prog_name="gltf-draco")
def main() -> None:
    """gltf-draco: decode KHR_draco_mesh_compression glTF geometry."""


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output GLB file path. Defaults to <input stem>.decoded.glb.",
)
@click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W01,W02).",
)
@click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W03).",
)
@click.option(
    "--emit-manifest",
    "emit_manifest",
    type=click.Path(path_type=Path),
    default=None,
    help="Write a JSON build manifest to this path after a successful decode.",
)
def decode(
    input_file: Path,
    output: Path | None,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    emit_manifest: Path | None = None,
) -> None:
    """Decode Draco-compressed primitives and write an uncompressed GLB."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    if output is None:
        output = _default_output(input_file)

    try:
        gltf, buffers = load_document(input_file)
        decoded, report = decompress_gltf(gltf, buffers, warning_policy=warning_policy)
        save_glb(decoded, output)
        if emit_manifest is not None:
            manifest = build_manifest(
                input_path=input_file,
                output_path=output,
                report=report,
                warning_policy=warning_policy,
                command_args=sys.argv[1:],
            )
            emit_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    except DracoGltfError as e:
        raise click.ClickException(str(e))

    click.echo(f"Decoded: {output} ({report.decoded} of {report.compressed} primitives)")
    for outcome in report.primitives:
        if not outcome.decoded:
            click.echo(f"  kept compressed: {outcome.location}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Inspection output format.",
)
@click.option(
    "--decode",
    "decode_payloads",
    is_flag=True,
    default=False,
    help="Also decode each compressed payload and report its layout.",
)
def inspect(
    input_file: Path,
    output_format: str = "text",
    decode_payloads: bool = False,
) -> None:
    """List Draco-compressed primitives without writing output."""
    try:
        gltf, buffers = load_document(input_file)
        payload = inspect_document(gltf, buffers, decode=decode_payloads)
    except DracoGltfError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps(payload, indent=2))
    else:
        click.echo(render_text(payload), nl=False)
