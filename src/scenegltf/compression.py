"""Mesh compression codec interface and the DracoPy-backed default codec."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np

from scenegltf.errors import CodecError
from scenegltf.layout import as_float_rows, renormalize
from scenegltf.models import Mesh


@dataclass
class MeshPayload:
    """Packed arrays handed to a codec."""

    name: str
    positions: np.ndarray  # (N, 3) float32
    normals: np.ndarray  # (N, 3) float32, unit length
    texcoords: np.ndarray | None  # (N, 2) float32
    indices: np.ndarray  # (T*3,) uint32

    @classmethod
    def from_mesh(cls, mesh: Mesh) -> MeshPayload:
        texcoords = as_float_rows(mesh.texcoords, 2) if mesh.texcoords else None
        return cls(
            name=mesh.name,
            positions=as_float_rows(mesh.positions, 3),
            normals=renormalize(as_float_rows(mesh.normals, 3)),
            texcoords=texcoords,
            indices=np.asarray(mesh.indices, dtype=np.uint32),
        )


@dataclass
class EncodedMesh:
    """Codec output: the compressed bytes and the attribute ids inside them."""

    data: bytes
    attributes: dict[str, int]


MeshCodec = Callable[[MeshPayload], EncodedMesh]

# Draco GeometryAttribute::Type values
_DRACO_SEMANTICS = {0: "POSITION", 1: "NORMAL", 3: "TEXCOORD_0"}


def draco_attribute_ids(blob: bytes) -> dict[str, int]:
    """Read the glTF semantic -> Draco unique id map back out of a blob."""
    import DracoPy

    decoded = DracoPy.decode(blob)
    attributes = {}
    for attribute in decoded.attributes:
        semantic = _DRACO_SEMANTICS.get(int(attribute["attribute_type"]))
        if semantic is not None:
            attributes[semantic] = int(attribute["unique_id"])
    return attributes


def encode_draco(payload: MeshPayload) -> EncodedMesh:
    """Encode a triangle mesh with Draco.

    Vertex order is preserved so the accessors describing the mesh match
    what a loader decodes. The encoder only takes float64 attributes.

    Raises:
        CodecError: If the encoder rejects the mesh or returns no data.
    """
    if len(payload.indices) == 0:
        raise CodecError(f"Mesh {payload.name!r} has no triangles to encode")

    import DracoPy

    kwargs: dict = {"normals": payload.normals.astype(np.float64)}
    if payload.texcoords is not None:
        kwargs["tex_coord"] = payload.texcoords.astype(np.float64)
    try:
        blob = DracoPy.encode(
            payload.positions.astype(np.float64),
            faces=payload.indices.reshape(-1, 3),
            preserve_order=True,
            **kwargs,
        )
    except Exception as e:
        raise CodecError(f"Draco encoding failed for mesh {payload.name!r}: {e}") from e

    if not blob:
        raise CodecError(f"Draco encoder returned no data for mesh {payload.name!r}")
    blob = bytes(blob)
    try:
        attributes = draco_attribute_ids(blob)
    except Exception as e:
        raise CodecError(f"Cannot read back Draco attributes for mesh {payload.name!r}: {e}") from e
    missing = {"POSITION", "NORMAL"} - attributes.keys()
    if missing:
        raise CodecError(
            f"Draco blob for mesh {payload.name!r} lacks attributes: {', '.join(sorted(missing))}"
        )
    return EncodedMesh(data=blob, attributes=attributes)
