"""Joint resolution and per-vertex JOINTS_0/WEIGHTS_0 arrays."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from scenegltf.models import IDENTITY_MAT4, Node, SkinWeights
from scenegltf.warning_policy import WarningPolicy, emit_warning

MAX_INFLUENCES = 4
WEIGHT_EPSILON = 1e-16


@dataclass
class SkinJoints:
    """Resolved joint list ready for packing."""

    paths: list[str]  # skin joint order; paths[0] is the skeleton root
    nodes: list[int]  # node index per joint
    inverse_bind_matrices: np.ndarray  # (J, 4, 4) float32, row form


def collect_skin_weights(root: Node) -> list[SkinWeights]:
    """All skin-weight blocks in the subtree, depth-first."""
    return [
        node.mesh.skin_weights
        for node, _path in root.walk()
        if node.mesh is not None and node.mesh.skin_weights is not None
    ]


def order_joint_paths(paths: list[str]) -> list[str]:
    """Shortest path first; equal lengths keep lexicographic order.

    Path length stands in for hierarchy depth, so ancestors usually come
    first. This is a heuristic, not a guarantee of parent-before-child order.
    """
    return sorted(sorted(paths), key=len)


def resolve_joints(
    blocks: list[SkinWeights],
    node_index_by_path: dict[str, int],
    *,
    warning_policy: WarningPolicy | None = None,
) -> SkinJoints | None:
    """Match every referenced joint path to a node and build one shared skin.

    Unresolved paths are dropped (W01). Bind matrices from later blocks
    override earlier ones; a joint with no bind matrix gets the identity.
    Returns ``None`` when nothing resolves.
    """
    if not blocks:
        return None
    if len(blocks) > 1:
        emit_warning(
            "W05",
            f"{len(blocks)} skin-weight blocks found; exporting a single merged skin",
            policy=warning_policy,
        )

    referenced: set[str] = set()
    for block in blocks:
        referenced |= block.joint_paths()

    resolved: list[str] = []
    for path in sorted(referenced):
        if path in node_index_by_path:
            resolved.append(path)
        else:
            emit_warning(
                "W01",
                f"Joint path {path!r} does not match any node; dropped from skin",
                policy=warning_policy,
            )
    if not resolved:
        return None

    bind_matrices: dict = {}
    for block in blocks:
        bind_matrices.update(block.bind_matrices)

    ordered = order_joint_paths(resolved)
    ibms = np.array(
        [bind_matrices.get(path, IDENTITY_MAT4) for path in ordered],
        dtype=np.float32,
    ).reshape(-1, 4, 4)
    return SkinJoints(
        paths=ordered,
        nodes=[node_index_by_path[path] for path in ordered],
        inverse_bind_matrices=ibms,
    )


def compute_joint_weights(
    skin_weights: SkinWeights,
    joint_paths: list[str],
    *,
    mesh_name: str = "",
    warning_policy: WarningPolicy | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Build ``(N, 4)`` uint16 joint indices and ``(N, 4)`` float32 weights.

    Per vertex: pairs are taken in path order, stably sorted by descending
    weight, cut to the 4 heaviest, zero padded and scaled to sum to 1.
    Paths missing from ``joint_paths`` map to joint 0.
    """
    joint_index = {path: i for i, path in enumerate(joint_paths)}
    count = len(skin_weights.weights)
    joints = np.zeros((count, MAX_INFLUENCES), dtype=np.uint16)
    weights = np.zeros((count, MAX_INFLUENCES), dtype=np.float32)

    truncated = 0
    for v, vertex_weights in enumerate(skin_weights.weights):
        pairs = [(joint_index.get(path, 0), w) for path, w in sorted(vertex_weights.items())]
        pairs.sort(key=lambda p: -p[1])
        if len(pairs) > MAX_INFLUENCES:
            truncated += 1
            pairs = pairs[:MAX_INFLUENCES]

        scale = 1.0 / max(WEIGHT_EPSILON, sum(w for _, w in pairs))
        for slot, (j, w) in enumerate(pairs):
            joints[v, slot] = j
            weights[v, slot] = w * scale

    if truncated:
        emit_warning(
            "W02",
            f"Mesh {mesh_name!r}: {truncated} vertices have more than "
            f"{MAX_INFLUENCES} joint influences; lightest dropped",
            policy=warning_policy,
        )
    return joints, weights
