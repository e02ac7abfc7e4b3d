"""Classification of glTF vertex attribute names into semantics."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

_SET_INDEX_RE = re.compile(r"[0-9]+")


class SemanticKind(enum.Enum):
    POSITION = "POSITION"
    NORMAL = "NORMAL"
    TANGENT = "TANGENT"
    COLOR = "COLOR"
    TEXCOORD = "TEXCOORD"
    JOINTS = "JOINTS"
    WEIGHTS = "WEIGHTS"
    EXTRA = "EXTRA"
    UNRECOGNIZED = "UNRECOGNIZED"


# Prefixed kinds carry a set index, e.g. TEXCOORD_1.
_SET_KINDS: tuple[SemanticKind, ...] = (
    SemanticKind.COLOR,
    SemanticKind.TEXCOORD,
    SemanticKind.JOINTS,
    SemanticKind.WEIGHTS,
)


@dataclass(frozen=True)
class Semantic:
    """A classified vertex attribute semantic.

    ``set_index`` is only meaningful for COLOR/TEXCOORD/JOINTS/WEIGHTS and
    ``name`` for EXTRA (the name without its leading underscore) and
    UNRECOGNIZED (the raw input).
    """

    kind: SemanticKind
    set_index: int | None = None
    name: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.kind is not SemanticKind.UNRECOGNIZED

    @property
    def attribute_name(self) -> str:
        """The glTF attribute key this semantic is stored under."""
        if self.kind in _SET_KINDS:
            return f"{self.kind.value}_{self.set_index}"
        if self.kind is SemanticKind.EXTRA:
            return f"_{self.name}"
        if self.kind is SemanticKind.UNRECOGNIZED:
            return self.name or ""
        return self.kind.value

    def __str__(self) -> str:
        return self.attribute_name


def classify_semantic(name: str) -> Semantic:
    """Map an attribute name to a Semantic.

    Never raises; names that match no rule classify as UNRECOGNIZED.
    """
    if name in ("POSITION", "NORMAL", "TANGENT"):
        return Semantic(SemanticKind(name))

    if name.startswith("_"):
        return Semantic(SemanticKind.EXTRA, name=name[1:])

    for kind in _SET_KINDS:
        prefix = f"{kind.value}_"
        if name.startswith(prefix):
            suffix = name[len(prefix) :]
            if _SET_INDEX_RE.fullmatch(suffix):
                return Semantic(kind, set_index=int(suffix))
            return Semantic(SemanticKind.UNRECOGNIZED, name=name)

    return Semantic(SemanticKind.UNRECOGNIZED, name=name)


POSITION = Semantic(SemanticKind.POSITION)
NORMAL = Semantic(SemanticKind.NORMAL)
TANGENT = Semantic(SemanticKind.TANGENT)
