"""Coded diagnostics for primitives that fall back to their original description."""

from __future__ import annotations

import warnings
from dataclasses import dataclass

from gltf_draco.errors import DracoGltfError
from gltf_draco.models import PrimitiveLocation

DIAGNOSTICS: dict[str, str] = {
    "W01": "malformed KHR_draco_mesh_compression extension",
    "W02": "Draco payload could not be decoded",
    "W03": "decoded primitive could not be described",
}

KNOWN_CODES: frozenset[str] = frozenset(DIAGNOSTICS)


class DracoWarning(UserWarning):
    """A per-primitive fallback, tagged with its code and primitive location."""

    def __init__(
        self, code: str, message: str, location: PrimitiveLocation | None = None
    ) -> None:
        self.code = code
        self.detail = message
        self.location = location
        where = f" {location}:" if location is not None else ""
        super().__init__(f"[{code}]{where} {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code handling of diagnostics: suppress, escalate, or warn."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        _check_codes(self.warn_as_error | self.suppress)
        both = self.warn_as_error & self.suppress
        if both:
            raise ValueError(f"Codes both suppressed and escalated: {sorted(both)}")

    @classmethod
    def from_options(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy | None:
        """Build a policy from comma-separated code lists; None if both are unset."""
        if warn_as_error is None and suppress is None:
            return None
        return cls(
            warn_as_error=parse_code_list(warn_as_error or ""),
            suppress=parse_code_list(suppress or ""),
        )

    def action(self, code: str) -> str:
        """One of ``"ignore"``, ``"error"`` or ``"warn"``."""
        if code in self.suppress:
            return "ignore"
        if code in self.warn_as_error:
            return "error"
        return "warn"


def _check_codes(codes: frozenset[str]) -> None:
    unknown = sorted(codes - KNOWN_CODES)
    if unknown:
        raise ValueError(f"Unknown warning code: {unknown[0]!r} (known: {sorted(KNOWN_CODES)})")


def emit_warning(
    code: str,
    message: str,
    *,
    policy: WarningPolicy | None = None,
    location: PrimitiveLocation | None = None,
) -> DracoWarning:
    """Report a fallback for one primitive.

    The warning is dropped for suppressed codes, raised as
    ``DracoGltfError`` for escalated codes, and otherwise issued through
    ``warnings.warn``. The diagnostic is returned in the first and last case.
    """
    diagnostic = DracoWarning(code, message, location)
    action = policy.action(code) if policy is not None else "warn"
    if action == "error":
        raise DracoGltfError(str(diagnostic))
    if action == "warn":
        warnings.warn(diagnostic, stacklevel=2)
    return diagnostic


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse a comma-separated string of W-codes.

    Raises ``ValueError`` for unknown codes.
    """
    codes = frozenset(token.strip() for token in raw.split(",") if token.strip())
    _check_codes(codes)
    return codes
