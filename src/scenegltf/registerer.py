"""Object registerer: the single indexing authority for one export.

Walks the input scene graph, assigns sequential indices to every output
entity and packs all vertex, index, skin and morph data into buffers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pygltflib

from scenegltf.compression import EncodedMesh, MeshCodec, MeshPayload
from scenegltf.errors import CodecError
from scenegltf.layout import (
    Accessor,
    Buffer,
    BufferView,
    IndexAccessor,
    MatrixAccessor,
    VectorAccessor,
    float_bounds,
    uint_bounds,
    vector_type,
)
from scenegltf.models import Node, Transform
from scenegltf.morph import compute_morph_deltas
from scenegltf.options import ExportOptions
from scenegltf.skinning import collect_skin_weights, compute_joint_weights, resolve_joints
from scenegltf.warning_policy import WarningPolicy, emit_warning

TRIANGLES = 4


@dataclass
class MorphTargetRecord:
    position: int
    normal: int | None
    weight: float


@dataclass
class MeshRecord:
    index: int
    name: str
    material: int = 0
    indices: int | None = None
    attributes: dict[str, int] = field(default_factory=dict)
    targets: list[MorphTargetRecord] = field(default_factory=list)
    compressed_view: int | None = None
    compressed_attributes: dict[str, int] = field(default_factory=dict)
    mode: int = TRIANGLES


@dataclass
class SkinRecord:
    index: int
    name: str
    joints: list[int]
    joint_paths: list[str]
    inverse_bind_matrices: int

    @property
    def skeleton(self) -> int:
        return self.joints[0]


@dataclass
class NodeRecord:
    index: int
    name: str
    path: str
    transform: Transform
    mesh: int | None = None
    skin: int | None = None
    children: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class AttributeSink:
    """Where mesh attribute data goes.

    ``write_plain`` packs attributes into the primary buffer with buffer
    views. ``codec`` hands the whole mesh to a compressor and records one
    opaque view over its output. Both may be active at once.
    """

    write_plain: bool = True
    codec: MeshCodec | None = None
    share_compressed_buffer: bool = True
    on_codec_error: str = "fail"

    @classmethod
    def binary(cls) -> AttributeSink:
        return cls()

    @classmethod
    def compressed(
        cls, codec: MeshCodec, *, share_buffer: bool = True, on_codec_error: str = "fail"
    ) -> AttributeSink:
        return cls(
            write_plain=False,
            codec=codec,
            share_compressed_buffer=share_buffer,
            on_codec_error=on_codec_error,
        )

    @classmethod
    def dual(
        cls, codec: MeshCodec, *, share_buffer: bool = True, on_codec_error: str = "fail"
    ) -> AttributeSink:
        return cls(
            write_plain=True,
            codec=codec,
            share_compressed_buffer=share_buffer,
            on_codec_error=on_codec_error,
        )

    @classmethod
    def from_options(cls, options: ExportOptions, codec: MeshCodec) -> AttributeSink:
        if options.output_buffer == "binary":
            return cls.binary()
        factory = cls.compressed if options.compressed_only else cls.dual
        return factory(
            codec,
            share_buffer=options.share_compressed_buffer,
            on_codec_error=options.on_codec_error,
        )


def select_buffer_name(
    basename: str, *, compressed_blob: bool, share_compressed_buffer: bool, mesh_index: int
) -> str:
    """Name of the buffer a payload lands in.

    Plain data and shared codec blobs use ``basename``; unshared codec blobs
    get a per-mesh ``<basename>_NNN`` buffer.
    """
    if compressed_blob and not share_compressed_buffer:
        return f"{basename}_{mesh_index:03d}"
    return basename


class ObjectRegisterer:
    """Owns every buffer, view, accessor, mesh, skin and node of one export."""

    def __init__(self, basename: str, *, warning_policy: WarningPolicy | None = None) -> None:
        self.basename = basename
        self.warning_policy = warning_policy
        self.nodes: list[NodeRecord] = []
        self.meshes: list[MeshRecord] = []
        self.accessors: list[Accessor] = []
        self.buffer_views: list[BufferView] = []
        self.buffers: list[Buffer] = []
        self.skins: list[SkinRecord] = []
        self._buffers_by_name: dict[str, Buffer] = {}

    # -- primitives -------------------------------------------------------

    def buffer_for(self, name: str) -> Buffer:
        """Return the named buffer, creating it on first use."""
        buffer = self._buffers_by_name.get(name)
        if buffer is None:
            buffer = Buffer(name=name, index=len(self.buffers))
            self.buffers.append(buffer)
            self._buffers_by_name[name] = buffer
        return buffer

    def add_buffer_view(
        self, buffer: Buffer, payload: bytes, target: int | None, *, padded: bool = False
    ) -> BufferView:
        offset = buffer.append_padded(payload) if padded else buffer.append(payload)
        view = BufferView(
            index=len(self.buffer_views),
            buffer=buffer.index,
            byte_offset=offset,
            byte_length=len(payload),
            target=target,
        )
        self.buffer_views.append(view)
        return view

    def _view_index(self, buffer: Buffer | None, array: np.ndarray, target: int | None) -> int | None:
        if buffer is None:
            return None
        return self.add_buffer_view(buffer, array.tobytes(), target).index

    def _register(self, accessor: Accessor) -> int:
        self.accessors.append(accessor)
        return accessor.index

    def add_index_accessor(self, indices: np.ndarray, buffer: Buffer | None) -> int:
        """Register a uint32 index accessor; ``buffer=None`` registers metadata only."""
        indices = np.ascontiguousarray(indices, dtype=np.uint32)
        view = self._view_index(buffer, indices, pygltflib.ELEMENT_ARRAY_BUFFER)
        return self._register(
            IndexAccessor(
                index=len(self.accessors),
                count=len(indices),
                buffer_view=view,
                bounds=uint_bounds(indices),
            )
        )

    def add_vector_accessor(
        self,
        array: np.ndarray,
        buffer: Buffer | None,
        *,
        component_type: int = pygltflib.FLOAT,
        with_bounds: bool = True,
    ) -> int:
        """Register an ``(N, C)`` per-vertex accessor."""
        array = np.ascontiguousarray(array)
        view = self._view_index(buffer, array, pygltflib.ARRAY_BUFFER)
        return self._register(
            VectorAccessor(
                index=len(self.accessors),
                count=len(array),
                buffer_view=view,
                component_type=component_type,
                element_type=vector_type(array.shape[1]),
                bounds=float_bounds(array) if with_bounds else None,
            )
        )

    def add_matrix_accessor(self, matrices: np.ndarray, buffer: Buffer) -> int:
        """Register ``(J, 4, 4)`` row-form matrices, stored column-major."""
        column_major = np.ascontiguousarray(
            matrices.astype(np.float32).transpose(0, 2, 1)
        )
        view = self._view_index(buffer, column_major, None)
        return self._register(
            MatrixAccessor(index=len(self.accessors), count=len(matrices), buffer_view=view)
        )

    # -- nodes --------------------------------------------------------------

    def create_node(self, in_node: Node, path: str) -> NodeRecord:
        """Allocate the next node index; the transform is copied as authored."""
        record = NodeRecord(
            index=len(self.nodes),
            name=in_node.name,
            path=path,
            transform=in_node.transform.model_copy(deep=True),
        )
        self.nodes.append(record)
        return record

    def create_nodes(self, root: Node, parent_path: str = "") -> list[tuple[NodeRecord, Node]]:
        """Create records depth-first, parent before children."""
        pairs: list[tuple[NodeRecord, Node]] = []
        self._create_subtree(root, parent_path, pairs)
        return pairs

    def _create_subtree(
        self, in_node: Node, parent_path: str, pairs: list[tuple[NodeRecord, Node]]
    ) -> NodeRecord:
        path = in_node.effective_path(parent_path)
        record = self.create_node(in_node, path)
        pairs.append((record, in_node))
        for child in in_node.children:
            record.children.append(self._create_subtree(child, path, pairs).index)
        return record

    # -- skins --------------------------------------------------------------

    def register_skins(self, root: Node) -> SkinRecord | None:
        """Build the export's single skin from every skin-weight block under ``root``."""
        index_by_path: dict[str, int] = {}
        for node in self.nodes:
            index_by_path.setdefault(node.path, node.index)

        joints = resolve_joints(
            collect_skin_weights(root), index_by_path, warning_policy=self.warning_policy
        )
        if joints is None:
            return None

        ibm_accessor = self.add_matrix_accessor(
            joints.inverse_bind_matrices, self.buffer_for(self.basename)
        )
        skin = SkinRecord(
            index=len(self.skins),
            name=f"skin_{len(self.skins):03d}",
            joints=joints.nodes,
            joint_paths=joints.paths,
            inverse_bind_matrices=ibm_accessor,
        )
        self.skins.append(skin)
        return skin

    # -- meshes -------------------------------------------------------------

    def _encode(
        self, payload: MeshPayload, node: NodeRecord, sink: AttributeSink
    ) -> EncodedMesh | None:
        try:
            encoded = sink.codec(payload)
            if not encoded.data:
                raise CodecError(f"Codec returned no data for mesh {payload.name!r}")
        except CodecError as e:
            if sink.on_codec_error == "fail":
                raise
            outcome = "written uncompressed" if sink.write_plain else "skipped"
            emit_warning(
                "W03",
                f"Mesh {payload.name!r} on node {node.path!r} {outcome}: {e}",
                policy=self.warning_policy,
            )
            return None
        return encoded

    def register_components(self, node: NodeRecord, in_node: Node, sink: AttributeSink) -> MeshRecord | None:
        """Register the node's mesh, if any, and attach it to ``node``.

        Accessor order is fixed: indices, NORMAL, POSITION, TEXCOORD_0,
        JOINTS_0, WEIGHTS_0, then per morph target NORMAL and POSITION deltas.
        The codec runs before anything is registered, so a skipped mesh
        leaves no entities behind.
        """
        mesh = in_node.mesh
        if mesh is None:
            return None

        payload = MeshPayload.from_mesh(mesh)
        encoded = None
        if sink.codec is not None:
            encoded = self._encode(payload, node, sink)
            if encoded is None and not sink.write_plain:
                return None

        record = MeshRecord(
            index=len(self.meshes),
            name=mesh.name,
            material=mesh.materials[0] if mesh.materials else 0,
        )
        plain = self.buffer_for(self.basename) if sink.write_plain else None

        record.indices = self.add_index_accessor(payload.indices, plain)
        record.attributes["NORMAL"] = self.add_vector_accessor(payload.normals, plain)
        record.attributes["POSITION"] = self.add_vector_accessor(payload.positions, plain)
        if payload.texcoords is not None:
            record.attributes["TEXCOORD_0"] = self.add_vector_accessor(payload.texcoords, plain)

        if encoded is not None:
            blob_buffer = self.buffer_for(
                select_buffer_name(
                    self.basename,
                    compressed_blob=True,
                    share_compressed_buffer=sink.share_compressed_buffer,
                    mesh_index=record.index,
                )
            )
            view = self.add_buffer_view(
                blob_buffer, encoded.data, pygltflib.ARRAY_BUFFER, padded=True
            )
            record.compressed_view = view.index
            record.compressed_attributes = dict(encoded.attributes)

        if mesh.skin_weights is not None and self.skins and plain is not None:
            skin = self.skins[0]
            joints, weights = compute_joint_weights(
                mesh.skin_weights,
                skin.joint_paths,
                mesh_name=mesh.name,
                warning_policy=self.warning_policy,
            )
            record.attributes["JOINTS_0"] = self.add_vector_accessor(
                joints, plain, component_type=pygltflib.UNSIGNED_SHORT, with_bounds=False
            )
            record.attributes["WEIGHTS_0"] = self.add_vector_accessor(
                weights, plain, with_bounds=False
            )
            node.skin = skin.index

        if mesh.morph_targets:
            target_buffer = self.buffer_for(self.basename)
            for target in mesh.morph_targets:
                deltas = compute_morph_deltas(mesh, target)
                normal = None
                if deltas.normals is not None:
                    normal = self.add_vector_accessor(deltas.normals, target_buffer)
                position = self.add_vector_accessor(deltas.positions, target_buffer)
                record.targets.append(
                    MorphTargetRecord(position=position, normal=normal, weight=deltas.weight)
                )

        node.mesh = record.index
        self.meshes.append(record)
        return record

    def register_objects(self, root: Node, sink: AttributeSink) -> None:
        """Create all nodes, the skin (plain output only), then every mesh."""
        pairs = self.create_nodes(root)
        if sink.write_plain:
            self.register_skins(root)
        for record, in_node in pairs:
            self.register_components(record, in_node, sink)
