"""Tests for morph-target delta computation."""

import numpy as np

from scenegltf.models import MorphTarget
from scenegltf.morph import compute_morph_deltas


class TestMorphDeltas:
    def test_position_and_normal_deltas(self, make_mesh):
        mesh = make_mesh()
        target = MorphTarget(
            positions=[(0.0, 0.0, 1.0), (2.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
            normals=[(0.0, 1.0, 0.0)] * 3,
            weight=0.5,
        )
        deltas = compute_morph_deltas(mesh, target)
        np.testing.assert_array_equal(
            deltas.positions, [[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 0.0, 0.0]]
        )
        np.testing.assert_array_equal(deltas.normals, [[0.0, 1.0, -1.0]] * 3)
        assert deltas.weight == 0.5
        assert deltas.positions.dtype == np.float32

    def test_normals_taken_against_authored_base(self, make_mesh):
        mesh = make_mesh(normals=[(0.0, 0.0, 2.0)] * 3)
        target = MorphTarget(positions=mesh.positions, normals=[(0.0, 0.0, 3.0)] * 3)
        deltas = compute_morph_deltas(mesh, target)
        np.testing.assert_array_equal(deltas.normals[:, 2], [1.0, 1.0, 1.0])

    def test_target_without_normals(self, make_mesh):
        mesh = make_mesh()
        deltas = compute_morph_deltas(mesh, MorphTarget(positions=mesh.positions))
        assert deltas.normals is None
        assert not deltas.positions.any()
