"""Synthesis of an uncompressed glTF fragment describing decoded Draco data."""

from __future__ import annotations

import numpy as np
import pygltflib

from gltf_draco.errors import SynthesisError
from gltf_draco.models import (
    COMPONENT_DTYPES,
    MAX_U16_INDEX_COUNT,
    TYPE_COMPONENT_COUNT,
    AttributeLayout,
    DecodeConfig,
    SemanticLink,
)
from gltf_draco.semantic import Semantic


def promote_index_component_type(component_type: int, count: int) -> int:
    """Widen an index component type to UNSIGNED_INT past the 16-bit range.

    Never narrows: an UNSIGNED_INT input is returned unchanged.
    """
    if count > MAX_U16_INDEX_COUNT and component_type != pygltflib.UNSIGNED_INT:
        return pygltflib.UNSIGNED_INT
    return component_type


def _accessor(gltf: pygltflib.GLTF2, index: int, what: str) -> pygltflib.Accessor:
    accessors = gltf.accessors or []
    if not 0 <= index < len(accessors):
        raise SynthesisError(f"{what} accessor {index} out of range ({len(accessors)} accessors)")
    return accessors[index]


def index_accessor(gltf: pygltflib.GLTF2, primitive: pygltflib.Primitive) -> pygltflib.Accessor:
    """Return the original index accessor of a primitive.

    Raises:
        SynthesisError: If the primitive is not indexed.
    """
    if primitive.indices is None:
        raise SynthesisError("Draco-compressed primitive without indices is not supported")
    return _accessor(gltf, primitive.indices, "Index")


def attribute_accessor(
    gltf: pygltflib.GLTF2, primitive: pygltflib.Primitive, semantic: Semantic
) -> pygltflib.Accessor:
    """Return the original accessor a primitive declares for ``semantic``.

    Raises:
        SynthesisError: If the primitive has no such attribute.
    """
    index = getattr(primitive.attributes, semantic.attribute_name, None)
    if index is None:
        raise SynthesisError(f"Primitive has no accessor for attribute {semantic}")
    return _accessor(gltf, index, semantic.attribute_name)


def _check_link(link: SemanticLink, attribute_count: int) -> None:
    expected = set(range(attribute_count))
    actual = set(link.map)
    missing = sorted(expected - actual)
    if missing:
        raise SynthesisError(f"No semantic linked to decoded Draco attribute(s) {missing}")
    surplus = sorted(actual - expected)
    if surplus:
        raise SynthesisError(
            f"Draco attribute id(s) {surplus} not produced by the decoder "
            f"({attribute_count} attributes decoded)"
        )


def _buffer_view(
    offset: int, length: int, buffer_size: int, target: int, what: str
) -> pygltflib.BufferView:
    if offset < 0 or length < 0 or offset + length > buffer_size:
        raise SynthesisError(
            f"{what} region [{offset}, {offset + length}) exceeds decoded buffer "
            f"of {buffer_size} bytes"
        )
    return pygltflib.BufferView(
        buffer=0,
        byteOffset=offset,
        byteLength=length,
        target=target,
    )


def _check_layout(
    layout: AttributeLayout, original: pygltflib.Accessor, semantic: Semantic
) -> None:
    """The original accessor must describe the decoded stream byte for byte."""
    width = TYPE_COMPONENT_COUNT.get(original.type)
    dtype = COMPONENT_DTYPES.get(original.componentType)
    if width is None or dtype is None:
        raise SynthesisError(
            f"Accessor for {semantic} has unsupported type {original.type}/"
            f"{original.componentType}"
        )
    if (layout.component_type, layout.num_components) != (original.componentType, width):
        raise SynthesisError(
            f"Decoded {semantic} has component type {layout.component_type} x "
            f"{layout.num_components}, accessor declares {original.componentType} x {width}"
        )
    needed = original.count * np.dtype(dtype).itemsize * width
    if needed > layout.length:
        raise SynthesisError(
            f"Accessor for {semantic} needs {needed} bytes, decoded stream holds "
            f"{layout.length}"
        )


def build_document(
    primitive: pygltflib.Primitive,
    source: pygltflib.GLTF2,
    config: DecodeConfig,
    link: SemanticLink,
) -> pygltflib.GLTF2:
    """Describe decoded Draco output as a single-primitive glTF document.

    The result holds one buffer of ``config.buffer_size`` bytes, one buffer
    view and accessor for the index stream, one buffer view and accessor per
    decoded attribute, and one mesh with one triangle-list primitive.
    Attribute accessors keep the original component type, element type,
    count, normalization and bounds; bounds are not recomputed. Each original
    accessor must match the component type, width and byte size of its
    decoded stream.

    Raises:
        SynthesisError: If the link, the decode layout and the original
            primitive disagree.
    """
    _check_link(link, len(config.attributes))
    original_indices = index_accessor(source, primitive)
    index_type = promote_index_component_type(
        original_indices.componentType, original_indices.count
    )
    if config.index_component_type != index_type:
        raise SynthesisError(
            f"Decoded indices use component type {config.index_component_type}, "
            f"expected {index_type}"
        )
    if index_type not in COMPONENT_DTYPES:
        raise SynthesisError(f"Index accessor has unsupported component type {index_type}")
    index_bytes = original_indices.count * np.dtype(COMPONENT_DTYPES[index_type]).itemsize
    if index_bytes > config.index_length:
        raise SynthesisError(
            f"Index accessor needs {index_bytes} bytes, decoded index stream holds "
            f"{config.index_length}"
        )

    gltf = pygltflib.GLTF2(
        buffers=[pygltflib.Buffer(byteLength=config.buffer_size)],
        bufferViews=[],
        accessors=[],
        meshes=[],
    )

    gltf.bufferViews.append(
        _buffer_view(
            config.index_offset,
            config.index_length,
            config.buffer_size,
            pygltflib.ELEMENT_ARRAY_BUFFER,
            "Index",
        )
    )
    indices_idx = len(gltf.accessors)
    gltf.accessors.append(
        pygltflib.Accessor(
            bufferView=0,
            byteOffset=0,
            componentType=index_type,
            count=original_indices.count,
            type=original_indices.type,
        )
    )

    attributes = pygltflib.Attributes()
    for codec_index, layout in enumerate(config.attributes):
        semantic = link.map[codec_index]
        original = attribute_accessor(source, primitive, semantic)
        _check_layout(layout, original, semantic)

        bv_idx = len(gltf.bufferViews)
        gltf.bufferViews.append(
            _buffer_view(
                layout.offset,
                layout.length,
                config.buffer_size,
                pygltflib.ARRAY_BUFFER,
                f"Attribute {semantic}",
            )
        )

        acc_idx = len(gltf.accessors)
        gltf.accessors.append(
            pygltflib.Accessor(
                bufferView=bv_idx,
                byteOffset=0,
                componentType=original.componentType,
                normalized=original.normalized,
                count=original.count,
                type=original.type,
                min=list(original.min) if original.min else None,
                max=list(original.max) if original.max else None,
            )
        )
        setattr(attributes, semantic.attribute_name, acc_idx)

    gltf.meshes.append(
        pygltflib.Mesh(
            primitives=[
                pygltflib.Primitive(
                    attributes=attributes,
                    indices=indices_idx,
                    mode=pygltflib.TRIANGLES,
                )
            ]
        )
    )
    return gltf
