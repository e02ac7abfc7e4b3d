"""Inspection of Draco-compressed primitives in a glTF document."""

from __future__ import annotations

from collections.abc import Sequence

import pygltflib

from gltf_draco.decoder import Decoder, decode_draco, decode_mesh
from gltf_draco.errors import DracoGltfError
from gltf_draco.extension import has_draco_extension, parse_extension
from gltf_draco.models import DRACO_EXTENSION, PrimitiveLocation
from gltf_draco.semantic import classify_semantic
from gltf_draco.warning_policy import WarningPolicy


def _inspect_primitive(
    gltf: pygltflib.GLTF2,
    buffers: Sequence[bytes],
    primitive: pygltflib.Primitive,
    *,
    decode: bool,
    decoder: Decoder,
    warning_policy: WarningPolicy | None,
    location: PrimitiveLocation,
) -> dict:
    raw = primitive.extensions[DRACO_EXTENSION]
    entry: dict = {"buffer_view": None, "attributes": {}, "status": "ok"}
    if isinstance(raw, dict):
        entry["buffer_view"] = raw.get("bufferView")
        attrs = raw.get("attributes")
        if isinstance(attrs, dict):
            entry["attributes"] = {
                name: {
                    "id": index,
                    "semantic": classify_semantic(name).kind.value,
                }
                for name, index in sorted(attrs.items())
            }

    try:
        extension = parse_extension(primitive)
        if extension is None or not decode:
            return entry
        result = decode_mesh(
            extension,
            gltf,
            buffers,
            primitive,
            decoder=decoder,
            warning_policy=warning_policy,
            location=location,
        )
    except DracoGltfError as e:
        entry["status"] = "error"
        entry["error"] = str(e)
        return entry

    if result is None:
        entry["status"] = "decode_failed"
        return entry

    config = result.config
    entry["decoded"] = {
        "buffer_size": config.buffer_size,
        "index_count": config.index_count,
        "index_component_type": config.index_component_type,
        "attributes": [
            {
                "id": i,
                "count": layout.count,
                "components": layout.num_components,
                "component_type": layout.component_type,
                "offset": layout.offset,
                "length": layout.length,
            }
            for i, layout in enumerate(config.attributes)
        ],
    }
    return entry


def inspect_document(
    gltf: pygltflib.GLTF2,
    buffers: Sequence[bytes],
    *,
    decode: bool = False,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
) -> dict:
    """Describe every Draco-compressed primitive as a JSON-serializable dict."""
    primitives: list[dict] = []
    total = 0
    for mesh_index, mesh in enumerate(gltf.meshes or []):
        for prim_index, primitive in enumerate(mesh.primitives):
            total += 1
            if not has_draco_extension(primitive):
                continue
            entry = {"mesh": mesh_index, "mesh_name": mesh.name, "primitive": prim_index}
            entry.update(
                _inspect_primitive(
                    gltf,
                    buffers,
                    primitive,
                    decode=decode,
                    decoder=decoder,
                    warning_policy=warning_policy,
                    location=PrimitiveLocation(mesh_index, prim_index),
                )
            )
            primitives.append(entry)

    return {
        "extensions_used": list(gltf.extensionsUsed or []),
        "extensions_required": list(gltf.extensionsRequired or []),
        "primitive_count": total,
        "draco_primitive_count": len(primitives),
        "primitives": primitives,
    }


def render_text(payload: dict) -> str:
    """Render an inspection payload as human-readable text."""
    lines = [
        f"Primitives: {payload['primitive_count']} "
        f"({payload['draco_primitive_count']} Draco-compressed)",
    ]
    if payload["extensions_required"]:
        lines.append("Required extensions: " + ", ".join(payload["extensions_required"]))

    for entry in payload["primitives"]:
        name = f" {entry['mesh_name']!r}" if entry.get("mesh_name") else ""
        lines.append(
            f"mesh {entry['mesh']}{name} primitive {entry['primitive']}: "
            f"bufferView={entry['buffer_view']} status={entry['status']}"
        )
        for attr_name, attr in entry["attributes"].items():
            lines.append(f"  {attr_name}: id={attr['id']} ({attr['semantic']})")
        if "error" in entry:
            lines.append(f"  error: {entry['error']}")
        decoded = entry.get("decoded")
        if decoded is not None:
            lines.append(
                f"  decoded: {decoded['index_count']} indices, "
                f"{len(decoded['attributes'])} attribute(s), {decoded['buffer_size']} bytes"
            )

    return "\n".join(lines) + "\n"
