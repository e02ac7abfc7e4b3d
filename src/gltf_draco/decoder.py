"""Slicing of compressed payloads and Draco decoding via DracoPy."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import DracoPy
import numpy as np
import pygltflib

from gltf_draco.errors import BufferViewOutOfRangeError
from gltf_draco.extension import DracoExtension
from gltf_draco.models import (
    COMPONENT_DTYPES,
    AttributeLayout,
    DecodeConfig,
    DecodeResult,
    PrimitiveLocation,
)
from gltf_draco.synthesis import index_accessor, promote_index_component_type
from gltf_draco.warning_policy import WarningPolicy, emit_warning

Decoder = Callable[..., "DecodeResult | None"]

_DTYPE_COMPONENTS: dict[np.dtype, int] = {
    np.dtype(dtype): component_type for component_type, dtype in COMPONENT_DTYPES.items()
}

# draco::DataType values that have a glTF component type.
_DRACO_DATA_TYPES: dict[int, int] = {
    1: pygltflib.BYTE,
    2: pygltflib.UNSIGNED_BYTE,
    3: pygltflib.SHORT,
    4: pygltflib.UNSIGNED_SHORT,
    6: pygltflib.UNSIGNED_INT,
    9: pygltflib.FLOAT,
}

_CODEC_ERRORS = (DracoPy.FileTypeException, ValueError, RuntimeError)


def _pad4(size: int) -> int:
    return (4 - size % 4) % 4


def _as_stream(values: np.ndarray, component_type: int | None = None) -> np.ndarray:
    """Coerce a decoded attribute to a little-endian glTF component dtype."""
    arr = np.asarray(values)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if component_type is not None:
        dtype = np.dtype(COMPONENT_DTYPES[component_type])
    else:
        dtype = arr.dtype.newbyteorder("<")
        if dtype not in _DTYPE_COMPONENTS:
            dtype = np.dtype("<f4")
    return np.ascontiguousarray(arr, dtype=dtype)


def _decoded_streams(mesh: object) -> list[np.ndarray] | None:
    """Attribute arrays of a DracoPy mesh, indexed by Draco unique id.

    Returns None when the unique ids are not exactly 0..N-1, since the
    extension addresses attributes by that id.
    """
    attributes = sorted(mesh.attributes, key=lambda attr: attr["unique_id"])
    if [attr["unique_id"] for attr in attributes] != list(range(len(attributes))):
        return None
    streams = []
    for attr in attributes:
        width = int(attr["num_components"])
        data = np.asarray(attr["data"]).reshape(-1, width)
        streams.append(_as_stream(data, _DRACO_DATA_TYPES.get(attr.get("data_type"))))
    return streams


def layout_decoded_mesh(
    indices: np.ndarray,
    streams: Sequence[np.ndarray],
    *,
    index_component_type: int = pygltflib.UNSIGNED_SHORT,
) -> DecodeResult:
    """Pack an index stream and attribute arrays into one output buffer.

    The index stream comes first, followed by every attribute in codec index
    order. Each region starts on a 4-byte boundary.
    """
    blob = bytearray()

    index_bytes = (
        np.asarray(indices).reshape(-1).astype(COMPONENT_DTYPES[index_component_type]).tobytes()
    )
    blob.extend(index_bytes)
    blob.extend(b"\x00" * _pad4(len(blob)))

    layouts: list[AttributeLayout] = []
    for values in streams:
        stream = _as_stream(values)
        offset = len(blob)
        data = stream.tobytes()
        blob.extend(data)
        blob.extend(b"\x00" * _pad4(len(blob)))
        layouts.append(
            AttributeLayout(
                offset=offset,
                length=len(data),
                component_type=_DTYPE_COMPONENTS[stream.dtype],
                num_components=stream.shape[1],
                count=stream.shape[0],
            )
        )

    config = DecodeConfig(
        buffer_size=len(blob),
        index_offset=0,
        index_length=len(index_bytes),
        index_count=int(np.asarray(indices).size),
        index_component_type=index_component_type,
        attributes=tuple(layouts),
    )
    return DecodeResult(config=config, buffers=[bytes(blob)])


def decode_draco(
    data: bytes, *, index_component_type: int = pygltflib.UNSIGNED_SHORT
) -> DecodeResult | None:
    """Decode a Draco mesh and lay it out as one glTF-ready buffer.

    Returns None when the payload is not a decodable Draco triangle mesh.
    """
    try:
        mesh = DracoPy.decode(bytes(data))
    except _CODEC_ERRORS:
        return None

    faces = getattr(mesh, "faces", None)
    if faces is None or np.asarray(faces).size == 0:
        return None
    streams = _decoded_streams(mesh)
    if streams is None:
        return None

    return layout_decoded_mesh(
        np.asarray(faces),
        streams,
        index_component_type=index_component_type,
    )


def slice_compressed(
    gltf: pygltflib.GLTF2, buffers: Sequence[bytes], buffer_view: int
) -> bytes:
    """Return the bytes of ``buffer_view``.

    Raises:
        BufferViewOutOfRangeError: If the view, its buffer, or its byte range
            does not exist in the document.
    """
    views = gltf.bufferViews or []
    if not 0 <= buffer_view < len(views):
        raise BufferViewOutOfRangeError(
            f"Draco bufferView {buffer_view} out of range ({len(views)} buffer views)"
        )
    view = views[buffer_view]
    if not 0 <= view.buffer < len(buffers):
        raise BufferViewOutOfRangeError(
            f"bufferView {buffer_view} references missing buffer {view.buffer}"
        )

    start = view.byteOffset or 0
    end = start + view.byteLength
    data = buffers[view.buffer]
    if end > len(data):
        raise BufferViewOutOfRangeError(
            f"bufferView {buffer_view} range [{start}, {end}) exceeds buffer "
            f"{view.buffer} of {len(data)} bytes"
        )
    return bytes(data[start:end])


def decode_mesh(
    extension: DracoExtension,
    gltf: pygltflib.GLTF2,
    buffers: Sequence[bytes],
    primitive: pygltflib.Primitive,
    *,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
    location: PrimitiveLocation | None = None,
) -> DecodeResult | None:
    """Decode the compressed payload of one primitive.

    The index width requested from the decoder follows the same promotion
    rule the synthesized index accessor uses.

    Returns:
        The decode result, or None (after warning W02) if decoding failed.

    Raises:
        BufferViewOutOfRangeError: If the payload view does not exist.
        SynthesisError: If the primitive has no index accessor.
    """
    payload = slice_compressed(gltf, buffers, extension.buffer_view)
    original = index_accessor(gltf, primitive)
    component_type = promote_index_component_type(original.componentType, original.count)

    result = decoder(payload, index_component_type=component_type)
    if result is None:
        emit_warning(
            "W02",
            f"Draco decode failed for bufferView {extension.buffer_view} "
            f"({len(payload)} bytes)",
            policy=warning_policy,
            location=location,
        )
        return None
    return result
