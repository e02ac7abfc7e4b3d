"""Shared fixtures: in-memory Draco glTF documents and fake decoders."""

from __future__ import annotations

import numpy as np
import pygltflib
import pytest

from gltf_draco.decoder import layout_decoded_mesh
from gltf_draco.models import DRACO_EXTENSION

TETRA_POSITIONS = np.array(
    [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
    dtype=np.float32,
)
TETRA_NORMALS = np.array(
    [[0.0, 0.0, -1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]],
    dtype=np.float32,
)
TETRA_UVS = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]], dtype=np.float32)
TETRA_FACES = np.array([[0, 1, 2], [0, 1, 3], [0, 2, 3], [1, 2, 3]], dtype=np.uint32)

FAKE_PAYLOAD = b"NOT-DRACO-DATA!!"


def make_draco_gltf(
    *,
    payload: bytes = FAKE_PAYLOAD,
    extension: object | None = None,
    index_count: int = TETRA_FACES.size,
    index_component_type: int = pygltflib.UNSIGNED_SHORT,
    with_normals: bool = True,
) -> tuple[pygltflib.GLTF2, list[bytes]]:
    """A one-primitive document whose geometry lives only in a Draco payload.

    Accessor 0 is the index accessor, 1 POSITION and 2 NORMAL. None of them
    has a buffer view, as produced by Draco encoders.
    """
    if extension is None:
        attributes = {"POSITION": 0}
        if with_normals:
            attributes["NORMAL"] = 1
        extension = {"bufferView": 0, "attributes": attributes}

    accessors = [
        pygltflib.Accessor(
            componentType=index_component_type,
            count=index_count,
            type=pygltflib.SCALAR,
        ),
        pygltflib.Accessor(
            componentType=pygltflib.FLOAT,
            count=len(TETRA_POSITIONS),
            type=pygltflib.VEC3,
            min=[0.0, 0.0, 0.0],
            max=[1.0, 1.0, 1.0],
        ),
    ]
    prim_attributes = pygltflib.Attributes(POSITION=1)
    if with_normals:
        accessors.append(
            pygltflib.Accessor(
                componentType=pygltflib.FLOAT,
                count=len(TETRA_NORMALS),
                type=pygltflib.VEC3,
            )
        )
        prim_attributes.NORMAL = 2

    gltf = pygltflib.GLTF2(
        scene=0,
        scenes=[pygltflib.Scene(nodes=[0])],
        nodes=[pygltflib.Node(name="tetra", mesh=0)],
        meshes=[
            pygltflib.Mesh(
                name="tetra",
                primitives=[
                    pygltflib.Primitive(
                        attributes=prim_attributes,
                        indices=0,
                        extensions={DRACO_EXTENSION: extension},
                    )
                ],
            )
        ],
        accessors=accessors,
        bufferViews=[pygltflib.BufferView(buffer=0, byteOffset=0, byteLength=len(payload))],
        buffers=[pygltflib.Buffer(byteLength=len(payload))],
        extensionsUsed=[DRACO_EXTENSION],
        extensionsRequired=[DRACO_EXTENSION],
    )
    return gltf, [payload]


class FakeDecoder:
    """Decoder stand-in that lays out the tetrahedron and records calls."""

    def __init__(self, streams=None, faces=TETRA_FACES, fail: bool = False) -> None:
        self.streams = streams if streams is not None else [TETRA_POSITIONS, TETRA_NORMALS]
        self.faces = faces
        self.fail = fail
        self.calls: list[tuple[bytes, int]] = []

    def __call__(self, data: bytes, *, index_component_type: int = pygltflib.UNSIGNED_SHORT):
        self.calls.append((data, index_component_type))
        if self.fail:
            return None
        return layout_decoded_mesh(
            self.faces, self.streams, index_component_type=index_component_type
        )


@pytest.fixture
def draco_document():
    return make_draco_gltf()


@pytest.fixture
def fake_decoder():
    return FakeDecoder()


@pytest.fixture
def failing_decoder():
    return FakeDecoder(fail=True)
