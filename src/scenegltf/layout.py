"""Byte buffers, buffer views and typed accessors.

Every entity is addressed by its integer index in the owning registerer's
lists; views and accessors store indices, never references.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pygltflib

ALIGNMENT = 4


@dataclass
class Buffer:
    """Growable little-endian byte store persisted as ``<name>.bin``."""

    name: str
    index: int
    data: bytearray = field(default_factory=bytearray)

    @property
    def uri(self) -> str:
        return f"{self.name}.bin"

    @property
    def byte_length(self) -> int:
        return len(self.data)

    def append(self, payload: bytes) -> int:
        """Append bytes and return the offset they were written at."""
        offset = len(self.data)
        self.data.extend(payload)
        return offset

    def append_padded(self, payload: bytes) -> int:
        """Append bytes followed by zero padding up to the next 4-byte boundary."""
        offset = self.append(payload)
        self.data.extend(b"\x00" * (-len(self.data) % ALIGNMENT))
        return offset

    def to_gltf(self) -> pygltflib.Buffer:
        return pygltflib.Buffer(byteLength=self.byte_length, uri=self.uri)


@dataclass
class BufferView:
    index: int
    buffer: int
    byte_offset: int
    byte_length: int
    target: int | None = None  # ARRAY_BUFFER, ELEMENT_ARRAY_BUFFER or none

    def to_gltf(self) -> pygltflib.BufferView:
        bv = pygltflib.BufferView(
            buffer=self.buffer,
            byteOffset=self.byte_offset,
            byteLength=self.byte_length,
        )
        if self.target is not None:
            bv.target = self.target
        return bv


@dataclass(frozen=True)
class FloatBounds:
    min: list[float]
    max: list[float]


@dataclass(frozen=True)
class UintBounds:
    min: list[int]
    max: list[int]


def float_bounds(array: np.ndarray) -> FloatBounds | None:
    """Exact per-component bounds of a packed ``(N, C)`` float array."""
    if len(array) == 0:
        return None
    return FloatBounds(min=array.min(axis=0).tolist(), max=array.max(axis=0).tolist())


def uint_bounds(array: np.ndarray) -> UintBounds | None:
    """Exact bounds of a packed 1-D unsigned index array."""
    if len(array) == 0:
        return None
    return UintBounds(min=[int(array.min())], max=[int(array.max())])


@dataclass
class Accessor:
    """Fields shared by every accessor kind.

    ``buffer_view`` is ``None`` for accessors whose data lives inside a
    compressed blob; such accessors only describe count and type.
    """

    index: int
    count: int
    buffer_view: int | None = None

    component_type: int = 0
    element_type: str = ""

    @property
    def byte_offset(self) -> int | None:
        return 0 if self.buffer_view is not None else None

    def _bounds(self) -> FloatBounds | UintBounds | None:
        return None

    def to_gltf(self) -> pygltflib.Accessor:
        acc = pygltflib.Accessor(
            bufferView=self.buffer_view,
            byteOffset=self.byte_offset,
            componentType=self.component_type,
            count=self.count,
            type=self.element_type,
        )
        bounds = self._bounds()
        if bounds is not None:
            acc.min = list(bounds.min)
            acc.max = list(bounds.max)
        else:
            acc.min = acc.max = None
        return acc


@dataclass
class IndexAccessor(Accessor):
    """Triangle indices: SCALAR / UNSIGNED_INT with integer bounds."""

    bounds: UintBounds | None = None
    component_type: int = pygltflib.UNSIGNED_INT
    element_type: str = pygltflib.SCALAR

    def _bounds(self) -> UintBounds | None:
        return self.bounds


@dataclass
class VectorAccessor(Accessor):
    """Per-vertex VEC2/VEC3/VEC4 data, FLOAT or UNSIGNED_SHORT."""

    bounds: FloatBounds | None = None
    component_type: int = pygltflib.FLOAT
    element_type: str = pygltflib.VEC3

    def _bounds(self) -> FloatBounds | None:
        return self.bounds


@dataclass
class MatrixAccessor(Accessor):
    """MAT4 / FLOAT matrices; never carries bounds."""

    component_type: int = pygltflib.FLOAT
    element_type: str = pygltflib.MAT4


_VECTOR_TYPES: dict[int, str] = {2: pygltflib.VEC2, 3: pygltflib.VEC3, 4: pygltflib.VEC4}


def vector_type(width: int) -> str:
    return _VECTOR_TYPES[width]


def as_float_rows(values: object, width: int) -> np.ndarray:
    """Pack a sequence of tuples into a contiguous ``(N, width)`` float32 array."""
    arr = np.asarray(values, dtype=np.float32)
    return np.ascontiguousarray(arr.reshape(-1, width))


def renormalize(normals: np.ndarray) -> np.ndarray:
    """Scale every normal to unit length.

    Vectors with squared length at or below 1e-6 are returned unchanged.
    """
    out = normals.astype(np.float32, copy=True)
    if len(out) == 0:
        return out
    sq = np.einsum("ij,ij->i", out, out)
    mask = np.abs(sq) > 1e-6
    out[mask] *= (1.0 / np.sqrt(sq[mask]))[:, None].astype(np.float32)
    return out
