"""Decoding of KHR_draco_mesh_compression primitives into plain glTF."""

__version__ = "0.1.0"

from gltf_draco.decoder import decode_draco, decode_mesh, slice_compressed
from gltf_draco.extension import DracoExtension, parse_extension
from gltf_draco.handlers import (
    AnimationPlaybackHandler,
    DracoExtensionHandler,
    ExtensionHandler,
    HandlerRegistry,
    PrimitiveReplacement,
    default_registry,
)
from gltf_draco.loader import decompress_gltf, load_document, load_gltf, load_gltf_file
from gltf_draco.models import PrimitiveLocation
from gltf_draco.semantic import Semantic, SemanticKind, classify_semantic
from gltf_draco.synthesis import build_document, promote_index_component_type

__all__ = [
    "AnimationPlaybackHandler",
    "DracoExtension",
    "DracoExtensionHandler",
    "ExtensionHandler",
    "HandlerRegistry",
    "PrimitiveLocation",
    "PrimitiveReplacement",
    "Semantic",
    "SemanticKind",
    "build_document",
    "classify_semantic",
    "decode_draco",
    "decode_mesh",
    "decompress_gltf",
    "default_registry",
    "load_document",
    "load_gltf",
    "load_gltf_file",
    "parse_extension",
    "promote_index_component_type",
    "slice_compressed",
]
