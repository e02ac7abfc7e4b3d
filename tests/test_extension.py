"""Tests for KHR_draco_mesh_compression parsing."""

import pygltflib
import pytest

from gltf_draco.errors import MalformedExtensionError, UnrecognizedSemanticError
from gltf_draco.extension import (
    build_semantic_link,
    has_draco_extension,
    parse_extension,
    parse_extension_value,
)
from gltf_draco.models import DRACO_EXTENSION, DracoExtensionValue
from gltf_draco.semantic import NORMAL, POSITION, SemanticKind


def _primitive(value) -> pygltflib.Primitive:
    return pygltflib.Primitive(
        attributes=pygltflib.Attributes(POSITION=0),
        extensions={DRACO_EXTENSION: value},
    )


class TestParseExtension:
    def test_absent_is_not_applicable(self):
        prim = pygltflib.Primitive(attributes=pygltflib.Attributes(POSITION=0))
        assert not has_draco_extension(prim)
        assert parse_extension(prim) is None

    def test_other_extensions_ignored(self):
        prim = pygltflib.Primitive(
            attributes=pygltflib.Attributes(POSITION=0),
            extensions={"KHR_materials_variants": {"mappings": []}},
        )
        assert parse_extension(prim) is None

    def test_valid_record(self):
        ext = parse_extension(
            _primitive({"bufferView": 2, "attributes": {"POSITION": 0, "NORMAL": 1}})
        )
        assert ext is not None
        assert ext.buffer_view == 2
        assert ext.link.map == {0: POSITION, 1: NORMAL}
        assert list(ext.link.map) == [0, 1]

    def test_link_ordered_by_codec_index(self):
        ext = parse_extension(
            _primitive({"bufferView": 0, "attributes": {"TEXCOORD_0": 2, "NORMAL": 1, "POSITION": 0}})
        )
        assert list(ext.link.map) == [0, 1, 2]
        assert ext.link.semantic_for(2).kind is SemanticKind.TEXCOORD

    def test_extra_fields_tolerated(self):
        ext = parse_extension(
            _primitive({"bufferView": 0, "attributes": {"POSITION": 0}, "extras": {"a": 1}})
        )
        assert ext.buffer_view == 0

    def test_missing_buffer_view(self):
        with pytest.raises(MalformedExtensionError, match="schema validation"):
            parse_extension(_primitive({"attributes": {"POSITION": 0}}))

    def test_missing_attributes(self):
        with pytest.raises(MalformedExtensionError):
            parse_extension(_primitive({"bufferView": 0}))

    @pytest.mark.parametrize("buffer_view", ["2", 1.5, -1, None, True])
    def test_wrong_buffer_view_type(self, buffer_view):
        with pytest.raises(MalformedExtensionError):
            parse_extension(_primitive({"bufferView": buffer_view, "attributes": {}}))

    def test_negative_attribute_id(self):
        with pytest.raises(MalformedExtensionError):
            parse_extension(_primitive({"bufferView": 0, "attributes": {"POSITION": -1}}))

    def test_non_object_value(self):
        with pytest.raises(MalformedExtensionError, match="must be an object"):
            parse_extension(_primitive([0, 1]))

    def test_unrecognized_attribute_name(self):
        with pytest.raises(UnrecognizedSemanticError, match="COLOR_x"):
            parse_extension(_primitive({"bufferView": 0, "attributes": {"COLOR_x": 0}}))

    def test_duplicate_codec_index(self):
        with pytest.raises(MalformedExtensionError, match="used by both"):
            parse_extension(
                _primitive({"bufferView": 0, "attributes": {"POSITION": 0, "NORMAL": 0}})
            )


class TestBuildSemanticLink:
    def test_from_value(self):
        value = DracoExtensionValue(bufferView=5, attributes={"_BATCHID": 1, "POSITION": 0})
        link = build_semantic_link(value)
        assert link.buffer_view == 5
        assert link.map[1].kind is SemanticKind.EXTRA
        assert link.map[1].name == "BATCHID"

    def test_parse_extension_value_round_trip(self):
        value = parse_extension_value({"bufferView": 3, "attributes": {"POSITION": 0}})
        assert value.buffer_view == 3
        assert value.attributes == {"POSITION": 0}
