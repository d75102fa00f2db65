"""scenegltf: scene graph to glTF 2.0 exporter."""

__version__ = "0.1.0"
