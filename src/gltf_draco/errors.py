"""Custom exception hierarchy for the glTF Draco decoder."""


class DracoGltfError(Exception):
    """Base exception for all gltf-draco errors."""


class LoadError(DracoGltfError):
    """Raised when a glTF/GLB document or one of its buffers cannot be read."""


class MalformedExtensionError(DracoGltfError):
    """Raised when a KHR_draco_mesh_compression record does not parse."""


class UnrecognizedSemanticError(DracoGltfError):
    """Raised when a Draco attribute name is not a known glTF semantic."""


class BufferViewOutOfRangeError(DracoGltfError):
    """Raised when the compressed payload references a missing buffer view."""


class SynthesisError(DracoGltfError):
    """Raised when decoded output cannot be described consistently as glTF."""


class ExportError(DracoGltfError):
    """Raised when a decompressed document cannot be written."""
