"""glTF document assembly and the export pipeline.

Pipeline: register -> assemble JSON -> write JSON -> write buffers ->
copy textures. Any failure aborts with ``ExportError``; files written before
the failing step are left in place.
"""

from __future__ import annotations

import json
import posixpath
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pygltflib

from scenegltf.compression import MeshCodec, encode_draco
from scenegltf.errors import ExportError, SceneGltfError
from scenegltf.imaging import convert_or_resize_image, has_alpha_channel
from scenegltf.materials import (
    PBR_EXTENSION,
    PRELOAD_EXTENSION,
    UDIM_EXTENSION,
    TextureTable,
    build_image,
    build_material,
    build_sampler,
    build_texture,
    build_texture_table,
)
from scenegltf.models import IDENTITY_MAT4, Material, Node, SceneSpec
from scenegltf.options import ExportOptions, TextureOptions
from scenegltf.registerer import AttributeSink, MeshRecord, NodeRecord, ObjectRegisterer
from scenegltf.vrm import build_vrm_extension
from scenegltf.warning_policy import WarningPolicy

DRACO_EXTENSION = "KHR_draco_mesh_compression"
VRM_EXTENSION = "VRM"
TRANSFORM_EPSILON = 1e-15


def _root_node(scene: Node | SceneSpec) -> Node:
    return scene.root if isinstance(scene, SceneSpec) else scene


def _differs(values, reference) -> bool:
    """True if any component differs from ``reference`` by more than 1e-15."""
    a = np.asarray(values, dtype=np.float64)
    b = np.asarray(reference, dtype=np.float64)
    return bool(np.any(np.abs(a - b) > TRANSFORM_EPSILON))


def _build_node(record: NodeRecord) -> pygltflib.Node:
    """Node with only the non-identity parts of its authored transform."""
    node = pygltflib.Node(name=record.name)
    transform = record.transform
    if transform.is_trs:
        translation, rotation, scale = transform.trs
        if _differs(translation, (0.0, 0.0, 0.0)):
            node.translation = list(translation)
        if _differs(rotation, (0.0, 0.0, 0.0, 1.0)):
            node.rotation = list(rotation)
        if _differs(scale, (1.0, 1.0, 1.0)):
            node.scale = list(scale)
    elif _differs(transform.matrix, IDENTITY_MAT4):
        # glTF matrices are column-major
        node.matrix = np.asarray(transform.matrix, dtype=np.float64).T.flatten().tolist()

    if record.children:
        node.children = list(record.children)
    if record.mesh is not None:
        node.mesh = record.mesh
    if record.skin is not None:
        node.skin = record.skin
    return node


def _build_mesh(record: MeshRecord, material_count: int) -> pygltflib.Mesh:
    primitive = pygltflib.Primitive(
        attributes=pygltflib.Attributes(**record.attributes),
        indices=record.indices,
        mode=record.mode,
    )
    if 0 <= record.material < material_count:
        primitive.material = record.material
    if record.targets:
        primitive.targets = [
            pygltflib.Attributes(NORMAL=t.normal, POSITION=t.position) for t in record.targets
        ]
    if record.compressed_view is not None:
        primitive.extensions = {
            DRACO_EXTENSION: {
                "bufferView": record.compressed_view,
                "attributes": dict(record.compressed_attributes),
            }
        }

    mesh = pygltflib.Mesh(name=record.name, primitives=[primitive])
    if record.targets:
        mesh.weights = [float(t.weight) for t in record.targets]
    return mesh


def _build_skins(registerer: ObjectRegisterer) -> list[pygltflib.Skin]:
    return [
        pygltflib.Skin(
            name=skin.name,
            joints=list(skin.joints),
            skeleton=skin.skeleton,
            inverseBindMatrices=skin.inverse_bind_matrices,
        )
        for skin in registerer.skins
        if skin.joints
    ]


def _extension_lists(
    options: ExportOptions, table: TextureTable
) -> tuple[list[str], list[str]]:
    used: list[str] = []
    required: list[str] = []
    if options.writes_compressed:
        used.append(DRACO_EXTENSION)
        if options.compressed_only:
            required.append(DRACO_EXTENSION)
    if options.make_preload_texture:
        used.append(PRELOAD_EXTENSION)
        required.append(PRELOAD_EXTENSION)
    elif table.has_preload:
        used.append(PRELOAD_EXTENSION)
    if options.vrm_export:
        used.append(VRM_EXTENSION)
    used.extend([PBR_EXTENSION, UDIM_EXTENSION])
    return used, required


def _compact(value):
    """Drop nulls and empty containers left by unset glTF properties."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            item = _compact(item)
            if item is None or (isinstance(item, (dict, list)) and not item):
                continue
            out[key] = item
        return out
    if isinstance(value, list):
        return [_compact(item) for item in value]
    return value


# Properties whose glTF default value is left out of the document.
_ACCESSOR_DEFAULTS = {"normalized": False}


def _drop_accessor_defaults(document: dict) -> None:
    for accessor in document.get("accessors", []):
        for key, default in _ACCESSOR_DEFAULTS.items():
            if key in accessor and accessor[key] == default:
                del accessor[key]


def _texture_source(path: str, texture_options: TextureOptions) -> Path:
    source = Path(path)
    if not source.is_absolute() and texture_options.source_dir is not None:
        source = texture_options.source_dir / source
    return source


def _texture_has_alpha(
    material: Material, table: TextureTable, texture_options: TextureOptions
) -> bool:
    if not texture_options.alpha_from_texture:
        return False
    texture = material.get_texture("BaseColor")
    if texture is None or table.index_of(texture.path) is None:
        return False
    return has_alpha_channel(_texture_source(texture.path, texture_options))


def build_document(
    scene: Node | SceneSpec,
    basename: str,
    options: ExportOptions | None = None,
    *,
    codec: MeshCodec | None = None,
    warning_policy: WarningPolicy | None = None,
) -> tuple[dict, ObjectRegisterer, TextureTable]:
    """Register the scene and assemble the glTF JSON tree in memory.

    Returns the document, the registerer holding the buffers to write, and
    the texture table.
    """
    options = options or ExportOptions()
    root = _root_node(scene)

    table = build_texture_table(root.materials)
    registerer = ObjectRegisterer(basename, warning_policy=warning_policy)
    sink = AttributeSink.from_options(options, codec or encode_draco)
    registerer.register_objects(root, sink)

    materials = [
        build_material(
            material,
            table,
            texture_has_alpha=_texture_has_alpha(material, table, options.textures),
            warning_policy=warning_policy,
        )
        for material in root.materials
    ]
    used, required = _extension_lists(options, table)

    gltf = pygltflib.GLTF2(
        asset=pygltflib.Asset(generator=options.generator, version="2.0"),
        extensionsUsed=used,
        extensionsRequired=required,
        samplers=[build_sampler()],
        images=[build_image(e, flatten_uris=options.textures.copy_files) for e in table.images],
        textures=[build_texture(i) for i in range(len(table.images))],
        scene=0,
        scenes=[pygltflib.Scene(nodes=[0] if registerer.nodes else [])],
        nodes=[_build_node(n) for n in registerer.nodes],
        meshes=[_build_mesh(m, len(materials)) for m in registerer.meshes],
        accessors=[a.to_gltf() for a in registerer.accessors],
        bufferViews=[bv.to_gltf() for bv in registerer.buffer_views],
        buffers=[b.to_gltf() for b in registerer.buffers],
        skins=_build_skins(registerer),
        materials=materials,
    )
    document = _compact(json.loads(gltf.to_json()))
    _drop_accessor_defaults(document)
    # an empty scene still needs its node list
    document["scenes"] = [{"nodes": [0] if registerer.nodes else []}]

    if options.vrm_export:
        base_textures = [
            table.index_of(m.textures["BaseColor"].path) if "BaseColor" in m.textures else None
            for m in root.materials
        ]
        document.setdefault("extensions", {})[VRM_EXTENSION] = build_vrm_extension(
            [n.name for n in registerer.nodes],
            root.materials,
            base_textures,
            options.vrm,
        )
    return document, registerer, table


def _copy_textures(
    table: TextureTable, output_dir: Path, texture_options: TextureOptions
) -> list[Path]:
    written: list[Path] = []
    for entry in table.images:
        if entry.texture.udim_mode:
            continue
        for path in filter(None, (entry.path, entry.preload_path)):
            dst = output_dir / posixpath.basename(path.replace("\\", "/"))
            convert_or_resize_image(
                _texture_source(path, texture_options),
                dst,
                max_size=texture_options.max_size,
                target_size=texture_options.target_size,
                power_of_two=texture_options.power_of_two,
                square=texture_options.square,
                quality=texture_options.quality,
            )
            written.append(dst)
    return written


def export_scene(
    scene: Node | SceneSpec,
    output_path: Path,
    options: ExportOptions | None = None,
    *,
    codec: MeshCodec | None = None,
    warning_policy: WarningPolicy | None = None,
) -> list[Path]:
    """Export a scene to ``output_path`` (.gltf) plus its buffer files.

    Buffers are written next to the document as ``<buffer name>.bin``.
    Returns every file written, document first.

    Raises:
        ExportError: On any failure, wrapping the underlying cause.
    """
    options = options or ExportOptions()
    output_path = Path(output_path)
    try:
        document, registerer, table = build_document(
            scene,
            output_path.stem,
            options,
            codec=codec,
            warning_policy=warning_policy,
        )

        text = json.dumps(document, indent=2 if options.prettify else None)
        output_path.write_text(text, encoding="utf-8")
        written = [output_path]

        for buffer in registerer.buffers:
            bin_path = output_path.parent / buffer.uri
            bin_path.write_bytes(bytes(buffer.data))
            written.append(bin_path)

        if options.textures.copy_files:
            written.extend(_copy_textures(table, output_path.parent, options.textures))
        return written
    except Exception as e:
        if isinstance(e, ExportError):
            raise
        raise ExportError(f"Failed to export glTF: {e}") from e


def try_export_scene(
    scene: Node | SceneSpec,
    output_path: Path,
    options: ExportOptions | None = None,
    *,
    codec: MeshCodec | None = None,
    warning_policy: WarningPolicy | None = None,
    diagnostics: Callable[[str], None] | None = None,
) -> bool:
    """Boolean-result variant of :func:`export_scene`.

    On failure the message goes to ``diagnostics`` and ``False`` is returned.
    """
    try:
        export_scene(
            scene, output_path, options, codec=codec, warning_policy=warning_policy
        )
    except SceneGltfError as e:
        if diagnostics is not None:
            diagnostics(str(e))
        return False
    return True
