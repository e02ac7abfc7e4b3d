"""Extension handlers invoked by a glTF load session."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field

import pygltflib

from gltf_draco.decoder import Decoder, decode_draco, decode_mesh
from gltf_draco.errors import (
    BufferViewOutOfRangeError,
    MalformedExtensionError,
    SynthesisError,
    UnrecognizedSemanticError,
)
from gltf_draco.extension import parse_extension
from gltf_draco.models import PrimitiveLocation
from gltf_draco.scene import AnimationClip, AnimationToPlay, Entity, SceneInstance
from gltf_draco.synthesis import build_document
from gltf_draco.warning_policy import WarningPolicy, emit_warning


@dataclass
class PrimitiveReplacement:
    """A substitute description for one primitive and the bytes it refers to."""

    document: pygltflib.GLTF2
    buffers: list[bytes] = field(default_factory=list)

    @property
    def primitive(self) -> pygltflib.Primitive:
        return self.document.meshes[0].primitives[0]


class ExtensionHandler:
    """Hooks called by a load session. Every hook is a no-op by default."""

    def on_primitive(
        self,
        gltf: pygltflib.GLTF2,
        primitive: pygltflib.Primitive,
        buffers: Sequence[bytes],
        location: PrimitiveLocation | None = None,
    ) -> PrimitiveReplacement | None:
        return None

    def on_animation(self, clip: AnimationClip) -> None:
        pass

    def on_animations_collected(
        self, clips: Sequence[AnimationClip], animation_roots: set[int]
    ) -> None:
        pass

    def on_node(self, node_index: int, entity: Entity) -> None:
        pass

    def on_scene_completed(self, scene: SceneInstance) -> None:
        pass


class HandlerRegistry:
    """Ordered handlers for a single load session."""

    def __init__(self, handlers: Iterable[ExtensionHandler] = ()) -> None:
        self._handlers: list[ExtensionHandler] = list(handlers)

    def add(self, handler: ExtensionHandler) -> None:
        self._handlers.append(handler)

    def __iter__(self) -> Iterator[ExtensionHandler]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def replace_primitive(
        self,
        gltf: pygltflib.GLTF2,
        primitive: pygltflib.Primitive,
        buffers: Sequence[bytes],
        location: PrimitiveLocation | None = None,
    ) -> PrimitiveReplacement | None:
        """Offer a primitive to each handler in order; the first replacement wins."""
        for handler in self._handlers:
            replacement = handler.on_primitive(gltf, primitive, buffers, location=location)
            if replacement is not None:
                return replacement
        return None


class DracoExtensionHandler(ExtensionHandler):
    """Replaces KHR_draco_mesh_compression primitives with decoded data.

    Per-primitive failures never propagate: they are reported as W01
    (malformed extension), W02 (decode failure) or W03 (anything else) and
    the primitive keeps its original description.
    """

    def __init__(
        self,
        *,
        decoder: Decoder = decode_draco,
        warning_policy: WarningPolicy | None = None,
    ) -> None:
        self.decoder = decoder
        self.warning_policy = warning_policy

    def on_primitive(
        self,
        gltf: pygltflib.GLTF2,
        primitive: pygltflib.Primitive,
        buffers: Sequence[bytes],
        location: PrimitiveLocation | None = None,
    ) -> PrimitiveReplacement | None:
        try:
            extension = parse_extension(primitive)
        except MalformedExtensionError as e:
            emit_warning("W01", str(e), policy=self.warning_policy, location=location)
            return None
        except UnrecognizedSemanticError as e:
            emit_warning("W03", str(e), policy=self.warning_policy, location=location)
            return None
        if extension is None:
            return None

        try:
            result = decode_mesh(
                extension,
                gltf,
                buffers,
                primitive,
                decoder=self.decoder,
                warning_policy=self.warning_policy,
                location=location,
            )
            if result is None:
                return None
            document = build_document(primitive, gltf, result.config, extension.link)
        except (BufferViewOutOfRangeError, SynthesisError) as e:
            emit_warning("W03", str(e), policy=self.warning_policy, location=location)
            return None

        return PrimitiveReplacement(document=document, buffers=list(result.buffers))


class AnimationPlaybackHandler(ExtensionHandler):
    """Starts the last reported animation clip on one animation root.

    When several root entities qualify, the one with the lowest node index
    is chosen.
    """

    def __init__(self) -> None:
        self.clip: AnimationClip | None = None
        self.animation_root_indices: set[int] = set()
        self.animation_root_entities: dict[int, Entity] = {}

    def on_animation(self, clip: AnimationClip) -> None:
        self.clip = clip

    def on_animations_collected(
        self, clips: Sequence[AnimationClip], animation_roots: set[int]
    ) -> None:
        self.animation_root_indices = set(animation_roots)

    def on_node(self, node_index: int, entity: Entity) -> None:
        if node_index in self.animation_root_indices:
            self.animation_root_entities[node_index] = entity

    def on_scene_completed(self, scene: SceneInstance) -> None:
        if self.clip is None:
            return
        candidates = sorted(i for i in self.animation_root_entities if i in scene.entities)
        if not candidates:
            return
        scene.entities[candidates[0]].insert(AnimationToPlay(clip=self.clip))


def default_registry(
    *,
    decoder: Decoder = decode_draco,
    warning_policy: WarningPolicy | None = None,
) -> HandlerRegistry:
    """Return a fresh registry holding the Draco handler."""
    return HandlerRegistry([DracoExtensionHandler(decoder=decoder, warning_policy=warning_policy)])
