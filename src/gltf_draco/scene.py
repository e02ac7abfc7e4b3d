"""Lightweight scene graph produced by a load session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class AnimationClip:
    """A glTF animation as reported to handlers."""

    index: int
    name: str | None
    duration: float
    target_nodes: frozenset[int] = frozenset()


@dataclass(frozen=True)
class AnimationToPlay:
    """Playback request attached to an animation root entity."""

    clip: AnimationClip
    repeat: bool = True


@dataclass
class Entity:
    """One spawned glTF node and the components attached to it."""

    node_index: int
    name: str | None = None
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    mesh: int | None = None
    components: dict[type, object] = field(default_factory=dict)

    def insert(self, component: object) -> None:
        self.components[type(component)] = component

    def get(self, component_type: type[T]) -> T | None:
        return self.components.get(component_type)  # type: ignore[return-value]


@dataclass
class SceneInstance:
    index: int
    name: str | None
    roots: list[int] = field(default_factory=list)
    entities: dict[int, Entity] = field(default_factory=dict)
