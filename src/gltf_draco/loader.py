"""Codec-agnostic glTF loading: buffers, accessors, meshes and scenes."""

from __future__ import annotations

import base64
import copy
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import unquote

import numpy as np
import pygltflib

from gltf_draco.decoder import Decoder, decode_draco
from gltf_draco.errors import ExportError, LoadError
from gltf_draco.extension import has_draco_extension
from gltf_draco.handlers import HandlerRegistry, PrimitiveReplacement, default_registry
from gltf_draco.models import (
    COMPONENT_DTYPES,
    DRACO_EXTENSION,
    TYPE_COMPONENT_COUNT,
    PrimitiveLocation,
)
from gltf_draco.scene import AnimationClip, Entity, SceneInstance
from gltf_draco.warning_policy import WarningPolicy


@dataclass
class MeshData:
    """Arrays read from one primitive, keyed by glTF attribute name."""

    attributes: dict[str, np.ndarray] = field(default_factory=dict)
    indices: np.ndarray | None = None
    mode: int = pygltflib.TRIANGLES

    @property
    def positions(self) -> np.ndarray | None:
        return self.attributes.get("POSITION")

    @property
    def normals(self) -> np.ndarray | None:
        return self.attributes.get("NORMAL")


@dataclass
class LoadedPrimitive:
    mesh_index: int
    primitive_index: int
    data: MeshData
    replacement: PrimitiveReplacement | None = None

    @property
    def decoded(self) -> bool:
        return self.replacement is not None


@dataclass
class LoadedAsset:
    gltf: pygltflib.GLTF2
    meshes: list[list[LoadedPrimitive]] = field(default_factory=list)
    animations: list[AnimationClip] = field(default_factory=list)
    scenes: list[SceneInstance] = field(default_factory=list)


@dataclass(frozen=True)
class PrimitiveOutcome:
    """What happened to one Draco-compressed primitive during decompression."""

    location: PrimitiveLocation
    decoded: bool
    attributes: tuple[str, ...] = ()
    vertex_count: int = 0
    index_count: int = 0


@dataclass(frozen=True)
class DecompressionReport:
    primitives: tuple[PrimitiveOutcome, ...] = ()
    dropped_views: int = 0
    reclaimed_bytes: int = 0

    @property
    def compressed(self) -> int:
        return len(self.primitives)

    @property
    def decoded(self) -> int:
        return sum(1 for outcome in self.primitives if outcome.decoded)


def _read_uri(uri: str, base_dir: Path) -> bytes:
    if uri.startswith("data:"):
        header, _, payload = uri.partition(",")
        if not header.endswith(";base64"):
            raise LoadError(f"Unsupported data URI encoding: {header!r}")
        try:
            return base64.b64decode(payload, validate=True)
        except ValueError as e:
            raise LoadError(f"Invalid base64 data URI: {e}") from e

    path = base_dir / unquote(uri)
    try:
        return path.read_bytes()
    except OSError as e:
        raise LoadError(f"Cannot read buffer {uri!r}: {e}") from e


def load_buffers(gltf: pygltflib.GLTF2, base_dir: Path) -> list[bytes]:
    """Resolve every buffer of a document to its bytes.

    Buffers without a URI are taken from the GLB binary chunk.
    """
    buffers: list[bytes] = []
    for i, buffer in enumerate(gltf.buffers or []):
        if buffer.uri is None:
            blob = gltf.binary_blob()
            if blob is None:
                raise LoadError(f"Buffer {i} has no URI and the document has no binary chunk")
            data = bytes(blob)
        else:
            data = _read_uri(buffer.uri, base_dir)
        if len(data) < buffer.byteLength:
            raise LoadError(
                f"Buffer {i} holds {len(data)} bytes, {buffer.byteLength} declared"
            )
        buffers.append(data)
    return buffers


def load_document(path: Path) -> tuple[pygltflib.GLTF2, list[bytes]]:
    """Read a .gltf or .glb file and all of its buffers.

    Raises:
        LoadError: If the document or a buffer cannot be read.
    """
    try:
        gltf = pygltflib.GLTF2().load(str(path))
    except (OSError, ValueError) as e:
        raise LoadError(f"Cannot load glTF document {path}: {e}") from e
    if gltf is None:
        raise LoadError(f"Cannot load glTF document {path}")
    return gltf, load_buffers(gltf, path.parent)


def read_accessor(gltf: pygltflib.GLTF2, buffers: Sequence[bytes], index: int) -> np.ndarray:
    """Read an accessor into an array of shape (count,) or (count, components).

    Accessors without a buffer view read as zeros. Sparse substitution is not
    applied.
    """
    try:
        accessor = gltf.accessors[index]
        dtype = np.dtype(COMPONENT_DTYPES[accessor.componentType])
        width = TYPE_COMPONENT_COUNT[accessor.type]
    except (IndexError, KeyError, TypeError) as e:
        raise LoadError(f"Invalid accessor {index}: {e}") from e

    count = accessor.count
    if accessor.bufferView is None:
        data = np.zeros(count * width, dtype=dtype)
    else:
        view = gltf.bufferViews[accessor.bufferView]
        raw = buffers[view.buffer]
        start = (view.byteOffset or 0) + (accessor.byteOffset or 0)
        item_size = dtype.itemsize * width
        stride = view.byteStride or item_size
        end = start + stride * max(count - 1, 0) + item_size
        if count and end > len(raw):
            raise LoadError(
                f"Accessor {index} reads [{start}, {end}) past buffer {view.buffer} "
                f"of {len(raw)} bytes"
            )
        if stride == item_size:
            data = np.frombuffer(raw, dtype=dtype, count=count * width, offset=start)
        else:
            rows = b"".join(
                raw[start + i * stride : start + i * stride + item_size] for i in range(count)
            )
            data = np.frombuffer(rows, dtype=dtype)

    if width == 1:
        return data.copy()
    return data.reshape((count, width)).copy()


def primitive_attributes(primitive: pygltflib.Primitive) -> dict[str, int]:
    """Attribute name to accessor index, skipping unset attributes."""
    return {
        name: index
        for name, index in vars(primitive.attributes).items()
        if index is not None
    }


def build_mesh_data(
    gltf: pygltflib.GLTF2, buffers: Sequence[bytes], primitive: pygltflib.Primitive
) -> MeshData:
    """Read every attribute and the index stream of a primitive."""
    attributes = {
        name: read_accessor(gltf, buffers, index)
        for name, index in primitive_attributes(primitive).items()
    }
    indices = None
    if primitive.indices is not None:
        indices = read_accessor(gltf, buffers, primitive.indices)
    mode = primitive.mode if primitive.mode is not None else pygltflib.TRIANGLES
    return MeshData(attributes=attributes, indices=indices, mode=mode)


def _parent_map(gltf: pygltflib.GLTF2) -> dict[int, int]:
    parents: dict[int, int] = {}
    for i, node in enumerate(gltf.nodes or []):
        for child in node.children or []:
            parents[child] = i
    return parents


def _animation_root(node_index: int, parents: dict[int, int]) -> int:
    seen = {node_index}
    while node_index in parents:
        node_index = parents[node_index]
        if node_index in seen:
            raise LoadError(f"Node hierarchy contains a cycle at node {node_index}")
        seen.add(node_index)
    return node_index


def _collect_animations(gltf: pygltflib.GLTF2, buffers: Sequence[bytes]) -> list[AnimationClip]:
    clips: list[AnimationClip] = []
    for i, animation in enumerate(gltf.animations or []):
        targets = frozenset(
            ch.target.node
            for ch in animation.channels or []
            if ch.target is not None and ch.target.node is not None
        )
        duration = 0.0
        for sampler in animation.samplers or []:
            accessor = gltf.accessors[sampler.input]
            if accessor.max:
                duration = max(duration, float(accessor.max[0]))
            elif accessor.count:
                times = read_accessor(gltf, buffers, sampler.input)
                duration = max(duration, float(times.max()))
        clips.append(
            AnimationClip(index=i, name=animation.name, duration=duration, target_nodes=targets)
        )
    return clips


def _spawn_scene(
    gltf: pygltflib.GLTF2, scene_index: int, registry: HandlerRegistry
) -> SceneInstance:
    scene = gltf.scenes[scene_index]
    instance = SceneInstance(index=scene_index, name=scene.name, roots=list(scene.nodes or []))

    stack: list[tuple[int, int | None]] = [(root, None) for root in reversed(instance.roots)]
    while stack:
        node_index, parent = stack.pop()
        if node_index in instance.entities:
            raise LoadError(f"Node {node_index} appears more than once in scene {scene_index}")
        node = gltf.nodes[node_index]
        entity = Entity(
            node_index=node_index,
            name=node.name,
            parent=parent,
            children=list(node.children or []),
            mesh=node.mesh,
        )
        instance.entities[node_index] = entity
        for handler in registry:
            handler.on_node(node_index, entity)
        stack.extend((child, node_index) for child in reversed(entity.children))

    for handler in registry:
        handler.on_scene_completed(instance)
    return instance


def load_gltf(
    gltf: pygltflib.GLTF2,
    buffers: Sequence[bytes],
    *,
    registry: HandlerRegistry | None = None,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
) -> LoadedAsset:
    """Run a load session over an in-memory document.

    Every primitive is offered to the registry's handlers; a replacement, if
    any, is read in place of the original description. Without an explicit
    registry a fresh Draco-only registry is used.
    """
    if registry is None:
        registry = default_registry(decoder=decoder, warning_policy=warning_policy)

    asset = LoadedAsset(gltf=gltf)
    for mesh_index, mesh in enumerate(gltf.meshes or []):
        loaded: list[LoadedPrimitive] = []
        for prim_index, primitive in enumerate(mesh.primitives):
            location = PrimitiveLocation(mesh_index, prim_index)
            replacement = registry.replace_primitive(gltf, primitive, buffers, location=location)
            if replacement is not None:
                data = build_mesh_data(
                    replacement.document, replacement.buffers, replacement.primitive
                )
            else:
                data = build_mesh_data(gltf, buffers, primitive)
            loaded.append(LoadedPrimitive(mesh_index, prim_index, data, replacement))
        asset.meshes.append(loaded)

    asset.animations = _collect_animations(gltf, buffers)
    for clip in asset.animations:
        for handler in registry:
            handler.on_animation(clip)
    parents = _parent_map(gltf)
    roots = {_animation_root(n, parents) for clip in asset.animations for n in clip.target_nodes}
    for handler in registry:
        handler.on_animations_collected(asset.animations, roots)

    for scene_index in range(len(gltf.scenes or [])):
        asset.scenes.append(_spawn_scene(gltf, scene_index, registry))
    return asset


def load_gltf_file(
    path: Path,
    *,
    registry: HandlerRegistry | None = None,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
) -> LoadedAsset:
    """Load a .gltf/.glb file and run a load session over it."""
    gltf, buffers = load_document(path)
    return load_gltf(
        gltf, buffers, registry=registry, decoder=decoder, warning_policy=warning_policy
    )


def _append_aligned(blob: bytearray, data: bytes) -> int:
    blob.extend(b"\x00" * ((4 - len(blob) % 4) % 4))
    offset = len(blob)
    blob.extend(data)
    return offset


def _merge_replacement(
    out: pygltflib.GLTF2,
    blob: bytearray,
    primitive: pygltflib.Primitive,
    replacement: PrimitiveReplacement,
) -> None:
    """Append a replacement's data to ``out`` and rewire ``primitive`` to it."""
    doc = replacement.document
    bases = [_append_aligned(blob, data) for data in replacement.buffers]

    view_base = len(out.bufferViews)
    for view in doc.bufferViews:
        out.bufferViews.append(
            pygltflib.BufferView(
                buffer=0,
                byteOffset=bases[view.buffer] + (view.byteOffset or 0),
                byteLength=view.byteLength,
                byteStride=view.byteStride,
                target=view.target,
            )
        )

    acc_base = len(out.accessors)
    for accessor in doc.accessors:
        merged = copy.deepcopy(accessor)
        if merged.bufferView is not None:
            merged.bufferView += view_base
        out.accessors.append(merged)

    for name, index in primitive_attributes(replacement.primitive).items():
        setattr(primitive.attributes, name, index + acc_base)
    primitive.indices = replacement.primitive.indices + acc_base
    primitive.extensions = {
        k: v for k, v in (primitive.extensions or {}).items() if k != DRACO_EXTENSION
    }


def _outcome(
    location: PrimitiveLocation, replacement: PrimitiveReplacement | None
) -> PrimitiveOutcome:
    if replacement is None:
        return PrimitiveOutcome(location=location, decoded=False)
    doc = replacement.document
    prim = replacement.primitive
    attributes = primitive_attributes(prim)
    vertex_count = doc.accessors[attributes["POSITION"]].count if "POSITION" in attributes else 0
    return PrimitiveOutcome(
        location=location,
        decoded=True,
        attributes=tuple(sorted(attributes)),
        vertex_count=vertex_count,
        index_count=doc.accessors[prim.indices].count,
    )


def _view_slots(gltf: pygltflib.GLTF2) -> Iterator[tuple[object, str]]:
    """Yield ``(holder, key)`` for every buffer view reference in ``gltf``.

    Holders are pygltflib objects or, for Draco extensions, plain dicts.
    """
    for accessor in gltf.accessors or []:
        yield accessor, "bufferView"
        sparse = accessor.sparse
        if sparse is not None:
            for part in (sparse.indices, sparse.values):
                if part is not None:
                    yield part, "bufferView"
    for image in gltf.images or []:
        yield image, "bufferView"
    for mesh in gltf.meshes or []:
        for primitive in mesh.primitives:
            raw = (primitive.extensions or {}).get(DRACO_EXTENSION)
            if isinstance(raw, dict) and isinstance(raw.get("bufferView"), int):
                yield raw, "bufferView"


def _get_view(holder, key: str) -> int | None:
    return holder.get(key) if isinstance(holder, dict) else getattr(holder, key, None)


def _set_view(holder, key: str, value: int) -> None:
    if isinstance(holder, dict):
        holder[key] = value
    else:
        setattr(holder, key, value)


def _drop_views(out: pygltflib.GLTF2, blob: bytes, candidates: set[int]) -> tuple[bytes, int]:
    """Remove unreferenced views among ``candidates`` and repack the blob.

    Returns the new blob and the number of views removed.
    """
    slots = list(_view_slots(out))
    live = {_get_view(holder, key) for holder, key in slots}
    dead = candidates - live
    if not dead:
        return blob, 0

    remap: dict[int, int] = {}
    kept: list[pygltflib.BufferView] = []
    packed = bytearray()
    for old, view in enumerate(out.bufferViews):
        if old in dead:
            continue
        start = view.byteOffset or 0
        view.byteOffset = _append_aligned(packed, blob[start : start + view.byteLength])
        remap[old] = len(kept)
        kept.append(view)
    out.bufferViews = kept

    for holder, key in slots:
        index = _get_view(holder, key)
        if index in remap:
            _set_view(holder, key, remap[index])
    return bytes(packed), len(dead)


def decompress_gltf(
    gltf: pygltflib.GLTF2,
    buffers: Sequence[bytes],
    *,
    registry: HandlerRegistry | None = None,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
) -> tuple[pygltflib.GLTF2, DecompressionReport]:
    """Return a single-buffer copy of ``gltf`` with Draco primitives decoded.

    All source buffers are merged into one binary chunk. Payload views that
    only decoded primitives referenced are removed along with their bytes.
    Primitives that fail to decode keep their extension; the extension is
    dropped from ``extensionsUsed``/``extensionsRequired`` once no primitive
    uses it.
    """
    if registry is None:
        registry = default_registry(decoder=decoder, warning_policy=warning_policy)

    out = copy.deepcopy(gltf)
    blob = bytearray()
    offsets = [_append_aligned(blob, data) for data in buffers]
    for view in out.bufferViews:
        view.byteOffset = (view.byteOffset or 0) + offsets[view.buffer]
        view.buffer = 0

    outcomes: list[PrimitiveOutcome] = []
    released: set[int] = set()
    for mesh_index, mesh in enumerate(out.meshes):
        for prim_index, primitive in enumerate(mesh.primitives):
            if not has_draco_extension(primitive):
                continue
            location = PrimitiveLocation(mesh_index, prim_index)
            replacement = registry.replace_primitive(gltf, primitive, buffers, location=location)
            outcomes.append(_outcome(location, replacement))
            if replacement is None:
                continue
            raw = primitive.extensions[DRACO_EXTENSION]
            if isinstance(raw, dict) and isinstance(raw.get("bufferView"), int):
                released.add(raw["bufferView"])
            _merge_replacement(out, blob, primitive, replacement)

    all_decoded = all(outcome.decoded for outcome in outcomes)
    if all_decoded:
        out.extensionsUsed = [e for e in out.extensionsUsed or [] if e != DRACO_EXTENSION]
        out.extensionsRequired = [
            e for e in out.extensionsRequired or [] if e != DRACO_EXTENSION
        ]

    packed, dropped = _drop_views(out, bytes(blob), released)
    out.buffers = [pygltflib.Buffer(byteLength=len(packed))]
    out.set_binary_blob(packed)
    report = DecompressionReport(
        primitives=tuple(outcomes),
        dropped_views=dropped,
        reclaimed_bytes=len(blob) - len(packed),
    )
    return out, report


def save_glb(gltf: pygltflib.GLTF2, output_path: Path) -> None:
    """Write a document with an embedded binary chunk as GLB."""
    try:
        output_path.write_bytes(b"".join(gltf.save_to_bytes()))
    except OSError as e:
        raise ExportError(f"Cannot write {output_path}: {e}") from e
