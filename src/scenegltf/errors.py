"""Custom exception hierarchy for the scenegltf exporter."""


class SceneGltfError(Exception):
    """Base exception for all scenegltf errors."""


class ParseError(SceneGltfError):
    """Raised when a scene document, option file or GLB container cannot be read."""


class ValidationError(SceneGltfError):
    """Raised when a warning is promoted to an error by the warning policy."""


class CodecError(SceneGltfError):
    """Raised when mesh compression fails."""


class ImageError(SceneGltfError):
    """Raised when an image cannot be converted or resized."""


class ExportError(SceneGltfError):
    """Raised when glTF export fails."""
