"""Schema and data models shared by the Draco decode pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated

import pygltflib
from pydantic import BaseModel, ConfigDict, Field

from gltf_draco.semantic import Semantic

DRACO_EXTENSION = "KHR_draco_mesh_compression"

# Largest index count a 16-bit index accessor is allowed to describe.
MAX_U16_INDEX_COUNT = 65535

COMPONENT_DTYPES: dict[int, str] = {
    pygltflib.BYTE: "<i1",
    pygltflib.UNSIGNED_BYTE: "<u1",
    pygltflib.SHORT: "<i2",
    pygltflib.UNSIGNED_SHORT: "<u2",
    pygltflib.UNSIGNED_INT: "<u4",
    pygltflib.FLOAT: "<f4",
}

TYPE_COMPONENT_COUNT: dict[str, int] = {
    pygltflib.SCALAR: 1,
    pygltflib.VEC2: 2,
    pygltflib.VEC3: 3,
    pygltflib.VEC4: 4,
    pygltflib.MAT2: 4,
    pygltflib.MAT3: 9,
    pygltflib.MAT4: 16,
}


class DracoExtensionValue(BaseModel):
    """The JSON body of a primitive's ``KHR_draco_mesh_compression`` entry."""

    model_config = ConfigDict(extra="ignore", strict=True, populate_by_name=True)

    buffer_view: int = Field(alias="bufferView", ge=0)
    attributes: dict[str, Annotated[int, Field(ge=0)]]


@dataclass(frozen=True, order=True)
class PrimitiveLocation:
    """Position of a primitive inside a document's mesh list."""

    mesh: int
    primitive: int

    def __str__(self) -> str:
        return f"mesh {self.mesh} primitive {self.primitive}"


@dataclass(frozen=True)
class SemanticLink:
    """Draco attribute ids mapped to glTF semantics, plus the payload view."""

    map: dict[int, Semantic]
    buffer_view: int

    def semantic_for(self, codec_index: int) -> Semantic | None:
        return self.map.get(codec_index)


@dataclass(frozen=True)
class AttributeLayout:
    """Placement of one decoded attribute stream inside the output buffer."""

    offset: int
    length: int
    component_type: int
    num_components: int
    count: int


@dataclass(frozen=True)
class DecodeConfig:
    """Byte layout of a decoded Draco mesh.

    The index stream lives at ``index_offset``; attributes follow in codec
    index order. ``buffer_size`` covers every region including padding.
    """

    buffer_size: int
    index_offset: int
    index_length: int
    index_count: int
    index_component_type: int
    attributes: tuple[AttributeLayout, ...] = ()


@dataclass
class DecodeResult:
    config: DecodeConfig
    buffers: list[bytes] = field(default_factory=list)
