"""Parsing of the KHR_draco_mesh_compression primitive extension."""

from __future__ import annotations

from dataclasses import dataclass

import pygltflib
from pydantic import ValidationError as PydanticValidationError

from gltf_draco.errors import MalformedExtensionError, UnrecognizedSemanticError
from gltf_draco.models import DRACO_EXTENSION, DracoExtensionValue, SemanticLink
from gltf_draco.semantic import Semantic, classify_semantic


@dataclass(frozen=True)
class DracoExtension:
    """A parsed Draco extension record for one primitive."""

    value: DracoExtensionValue
    link: SemanticLink

    @property
    def buffer_view(self) -> int:
        return self.link.buffer_view


def has_draco_extension(primitive: pygltflib.Primitive) -> bool:
    """Return True if the primitive carries a Draco extension entry."""
    return DRACO_EXTENSION in (primitive.extensions or {})


def parse_extension_value(raw: object) -> DracoExtensionValue:
    """Validate the raw JSON value of a Draco extension entry.

    Raises:
        MalformedExtensionError: If the value is not an object with an integer
            ``bufferView`` and an ``attributes`` name-to-id mapping.
    """
    if not isinstance(raw, dict):
        raise MalformedExtensionError(
            f"{DRACO_EXTENSION} value must be an object, got {type(raw).__name__}"
        )
    try:
        return DracoExtensionValue.model_validate(raw)
    except PydanticValidationError as e:
        raise MalformedExtensionError(f"{DRACO_EXTENSION} schema validation failed:\n{e}") from e


def build_semantic_link(value: DracoExtensionValue) -> SemanticLink:
    """Classify every attribute name and key the result by Draco attribute id.

    Raises:
        UnrecognizedSemanticError: If an attribute name is not a glTF semantic.
        MalformedExtensionError: If two attribute names share one Draco id.
    """
    link: dict[int, Semantic] = {}
    for name, codec_index in value.attributes.items():
        semantic = classify_semantic(name)
        if not semantic.is_valid:
            raise UnrecognizedSemanticError(f"Unrecognized Draco attribute name: {name!r}")
        if codec_index in link:
            raise MalformedExtensionError(
                f"Draco attribute id {codec_index} is used by both "
                f"{link[codec_index]} and {name!r}"
            )
        link[codec_index] = semantic

    return SemanticLink(
        map={index: link[index] for index in sorted(link)},
        buffer_view=value.buffer_view,
    )


def parse_extension(primitive: pygltflib.Primitive) -> DracoExtension | None:
    """Parse the Draco extension of a primitive.

    Returns:
        The parsed extension, or None when the primitive is not compressed.

    Raises:
        MalformedExtensionError: On a structurally invalid record.
        UnrecognizedSemanticError: On an unknown attribute name.
    """
    if not has_draco_extension(primitive):
        return None

    value = parse_extension_value(primitive.extensions[DRACO_EXTENSION])
    return DracoExtension(value=value, link=build_semantic_link(value))
