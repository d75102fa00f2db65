"""Tests for buffers, buffer views and accessors."""

import numpy as np
import pygltflib

from scenegltf.layout import (
    Buffer,
    BufferView,
    IndexAccessor,
    MatrixAccessor,
    VectorAccessor,
    as_float_rows,
    float_bounds,
    renormalize,
    uint_bounds,
    vector_type,
)


class TestBuffer:
    def test_uri_from_name(self):
        assert Buffer(name="model", index=0).uri == "model.bin"

    def test_append_returns_offset(self):
        buf = Buffer(name="b", index=0)
        assert buf.append(b"abc") == 0
        assert buf.append(b"de") == 3
        assert buf.byte_length == 5

    def test_append_padded_aligns_tail(self):
        buf = Buffer(name="b", index=0)
        assert buf.append_padded(b"abcde") == 0
        assert buf.byte_length == 8
        assert bytes(buf.data[5:]) == b"\x00\x00\x00"

    def test_append_padded_aligned_payload_untouched(self):
        buf = Buffer(name="b", index=0)
        buf.append_padded(b"abcd")
        assert buf.byte_length == 4

    def test_to_gltf(self):
        buf = Buffer(name="b", index=0)
        buf.append(b"\x01\x02")
        gltf = buf.to_gltf()
        assert gltf.byteLength == 2
        assert gltf.uri == "b.bin"


class TestBufferView:
    def test_target_omitted_when_unset(self):
        bv = BufferView(index=0, buffer=0, byte_offset=8, byte_length=64).to_gltf()
        assert bv.target is None
        assert bv.byteOffset == 8

    def test_target_kept(self):
        bv = BufferView(
            index=0, buffer=1, byte_offset=0, byte_length=4, target=pygltflib.ARRAY_BUFFER
        ).to_gltf()
        assert bv.target == pygltflib.ARRAY_BUFFER
        assert bv.buffer == 1


class TestBounds:
    def test_float_bounds_per_component(self):
        arr = np.array([[0.0, 5.0, -1.0], [2.0, -3.0, 4.0]], dtype=np.float32)
        bounds = float_bounds(arr)
        assert bounds.min == [0.0, -3.0, -1.0]
        assert bounds.max == [2.0, 5.0, 4.0]

    def test_float_bounds_empty(self):
        assert float_bounds(np.zeros((0, 3), dtype=np.float32)) is None

    def test_uint_bounds(self):
        bounds = uint_bounds(np.array([4, 1, 9], dtype=np.uint32))
        assert bounds.min == [1]
        assert bounds.max == [9]
        assert all(isinstance(v, int) for v in bounds.min + bounds.max)

    def test_uint_bounds_empty(self):
        assert uint_bounds(np.zeros(0, dtype=np.uint32)) is None


class TestAccessors:
    def test_index_accessor_defaults(self):
        acc = IndexAccessor(index=0, count=3, buffer_view=0, bounds=uint_bounds(np.array([0, 1, 2])))
        gltf = acc.to_gltf()
        assert gltf.componentType == pygltflib.UNSIGNED_INT
        assert gltf.type == pygltflib.SCALAR
        assert gltf.byteOffset == 0
        assert gltf.min == [0]
        assert gltf.max == [2]

    def test_metadata_only_accessor_has_no_view(self):
        acc = VectorAccessor(index=1, count=3)
        gltf = acc.to_gltf()
        assert gltf.bufferView is None
        assert gltf.byteOffset is None
        assert gltf.min is None

    def test_matrix_accessor_has_no_bounds(self):
        gltf = MatrixAccessor(index=0, count=2, buffer_view=0).to_gltf()
        assert gltf.type == pygltflib.MAT4
        assert gltf.componentType == pygltflib.FLOAT
        assert gltf.min is None
        assert gltf.max is None

    def test_vector_type(self):
        assert vector_type(2) == "VEC2"
        assert vector_type(4) == "VEC4"


class TestPacking:
    def test_as_float_rows(self):
        arr = as_float_rows([(1, 2, 3), (4, 5, 6)], 3)
        assert arr.dtype == np.float32
        assert arr.shape == (2, 3)
        assert arr.flags["C_CONTIGUOUS"]

    def test_as_float_rows_empty(self):
        assert as_float_rows([], 2).shape == (0, 2)

    def test_renormalize_unit_length(self):
        normals = np.array([[0.0, 0.0, 2.0], [3.0, 4.0, 0.0]], dtype=np.float32)
        out = renormalize(normals)
        np.testing.assert_allclose(np.linalg.norm(out, axis=1), [1.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(out[1], [0.6, 0.8, 0.0], atol=1e-6)

    def test_renormalize_tiny_vectors_untouched(self):
        normals = np.array([[0.0, 0.0, 0.0], [1e-4, 0.0, 0.0]], dtype=np.float32)
        np.testing.assert_array_equal(renormalize(normals), normals)

    def test_renormalize_does_not_mutate_input(self):
        normals = np.array([[0.0, 0.0, 2.0]], dtype=np.float32)
        renormalize(normals)
        assert normals[0, 2] == 2.0
