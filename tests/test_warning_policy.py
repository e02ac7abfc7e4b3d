"""Tests for warning policy controls."""

from __future__ import annotations

import warnings

import pytest

from gltf_draco.errors import DracoGltfError
from gltf_draco.models import PrimitiveLocation
from gltf_draco.warning_policy import (
    KNOWN_CODES,
    DracoWarning,
    WarningPolicy,
    emit_warning,
    parse_code_list,
)


class TestParseCodeList:
    def test_single_code(self):
        assert parse_code_list("W01") == frozenset({"W01"})

    def test_multiple_codes(self):
        assert parse_code_list("W01,W02") == frozenset({"W01", "W02"})

    def test_whitespace_stripped(self):
        assert parse_code_list("W01 , W03") == frozenset({"W01", "W03"})

    def test_empty_string(self):
        assert parse_code_list("") == frozenset()

    def test_unknown_code_rejected(self):
        with pytest.raises(ValueError, match="Unknown warning code.*W99"):
            parse_code_list("W99")


class TestEmitWarning:
    def test_default_emits_draco_warning(self):
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            emit_warning("W02", "decode failed")
        assert len(w) == 1
        assert issubclass(w[0].category, DracoWarning)
        assert w[0].message.code == "W02"
        assert "[W02]" in str(w[0].message)

    def test_suppressed(self):
        policy = WarningPolicy(suppress=frozenset({"W01"}))
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            emit_warning("W01", "test message", policy=policy)
        assert len(w) == 0

    def test_warn_as_error(self):
        policy = WarningPolicy(warn_as_error=frozenset({"W03"}))
        with pytest.raises(DracoGltfError, match=r"\[W03\]"):
            emit_warning("W03", "test message", policy=policy)

    def test_unaffected_code_still_warns(self):
        policy = WarningPolicy(suppress=frozenset({"W02"}))
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            emit_warning("W01", "test message", policy=policy)
        assert len(w) == 1


class TestKnownCodes:
    def test_contains_expected_codes(self):
        assert KNOWN_CODES == {"W01", "W02", "W03"}


class TestDracoWarning:
    def test_location_in_message(self):
        warning = DracoWarning("W03", "bad layout", PrimitiveLocation(2, 1))
        assert str(warning) == "[W03] mesh 2 primitive 1: bad layout"
        assert warning.detail == "bad layout"
        assert warning.location == PrimitiveLocation(2, 1)

    def test_without_location(self):
        assert str(DracoWarning("W01", "bad")) == "[W01] bad"

    def test_emit_returns_diagnostic(self):
        policy = WarningPolicy(suppress=frozenset({"W02"}))
        diagnostic = emit_warning("W02", "x", policy=policy, location=PrimitiveLocation(0, 3))
        assert diagnostic.code == "W02"
        assert diagnostic.location.primitive == 3

    def test_escalated_message_has_location(self):
        policy = WarningPolicy(warn_as_error=frozenset({"W01"}))
        with pytest.raises(DracoGltfError, match=r"\[W01\] mesh 1 primitive 0: broken"):
            emit_warning("W01", "broken", policy=policy, location=PrimitiveLocation(1, 0))


class TestWarningPolicy:
    def test_action(self):
        policy = WarningPolicy(warn_as_error=frozenset({"W02"}), suppress=frozenset({"W03"}))
        assert policy.action("W01") == "warn"
        assert policy.action("W02") == "error"
        assert policy.action("W03") == "ignore"

    def test_from_options_unset(self):
        assert WarningPolicy.from_options(None, None) is None

    def test_from_options(self):
        policy = WarningPolicy.from_options("W01,W02", None)
        assert policy.warn_as_error == {"W01", "W02"}
        assert policy.suppress == frozenset()

    def test_unknown_code_in_policy(self):
        with pytest.raises(ValueError, match="Unknown warning code"):
            WarningPolicy(suppress=frozenset({"W42"}))

    def test_code_both_suppressed_and_escalated(self):
        with pytest.raises(ValueError, match="both suppressed and escalated"):
            WarningPolicy.from_options("W01", "W01,W02")
