"""Morph-target delta computation."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from scenegltf.layout import as_float_rows
from scenegltf.models import Mesh, MorphTarget


@dataclass
class MorphDeltas:
    positions: np.ndarray  # (N, 3) float32
    normals: np.ndarray | None  # (N, 3) float32, None when the target has no normals
    weight: float


def compute_morph_deltas(mesh: Mesh, target: MorphTarget) -> MorphDeltas:
    """Per-vertex ``target - base`` for positions and normals.

    Normal deltas are taken against the authored base normals, before any
    renormalisation of the base mesh.
    """
    positions = as_float_rows(target.positions, 3) - as_float_rows(mesh.positions, 3)
    normals = None
    if target.normals:
        normals = as_float_rows(target.normals, 3) - as_float_rows(mesh.normals, 3)
    return MorphDeltas(positions=positions, normals=normals, weight=target.weight)
