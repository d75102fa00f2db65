"""Images, textures, samplers and materials, including the vendor extensions."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

import pygltflib

from scenegltf.models import Material, Texture
from scenegltf.warning_policy import WarningPolicy, emit_warning

LINEAR = 9729
CLAMP_TO_EDGE = 33071

# Marks a pre-baked low resolution variant: foo_s0.jpg preloads foo.jpg.
PRELOAD_MARKER = "_s0."

PBR_EXTENSION = "LTE_PBR_material"
UDIM_EXTENSION = "LTE_UDIM_texture"
PRELOAD_EXTENSION = "KSK_preloadUri"

SUBSURFACE_TYPES = ("diffusion", "randomwalk")

# Extension scalar key -> material parameter.
_PBR_SCALARS: tuple[str, ...] = (
    "baseWeight",
    "diffuseRoughness",
    "metalness",
    "specularWeight",
    "specularRoughness",
    "specularIOR",
    "specularRotation",
    "specularAnisotropy",
    "transmissionWeight",
    "transmissionDepth",
    "transmissionScatterAnisotropy",
    "transmissionExtraRoughness",
    "transmissionDispersion",
    "transmissionAovs",
    "subsurfaceWeight",
    "subsurfaceScale",
    "subsurfaceAnisotropy",
    "coatWeight",
    "coatRoughness",
    "coatIOR",
    "emissionWeight",
)

# Extension vector key -> component suffixes of the ``ai_<key>`` parameters.
_PBR_VECTORS: dict[str, str] = {
    "baseColor": "RGB",
    "specularColor": "RGB",
    "transmissionColor": "RGB",
    "transmissionScatter": "RGB",
    "subsurfaceColor": "RGB",
    "subsurfaceRadius": "RGB",
    "coatColor": "RGB",
    "coatNormal": "XYZ",
    "emissionColor": "RGB",
}

# Extension texture key -> material texture slot.
_PBR_TEXTURES: dict[str, str] = {
    "baseColorTexture": "ai_baseColor",
    "specularColorTexture": "ai_specularColor",
    "transmissionColorTexture": "ai_transmissionColor",
    "transmissionScatterTexture": "ai_transmissionScatter",
    "subsurfaceColorTexture": "ai_subsurfaceColor",
    "subsurfaceRadiusTexture": "ai_subsurfaceRadius",
    "subsurfaceScaleTexture": "ai_subsurfaceScaleTex",
    "coatColorTexture": "ai_coatColor",
    "emissionColorTexture": "ai_emissionColor",
    "opacityTexture": "ai_opacity",
}


def _strip_ext(path: str) -> str:
    return posixpath.splitext(path)[0]


def image_name(path: str) -> str:
    """Basename without extension."""
    return _strip_ext(posixpath.basename(path.replace("\\", "/")))


@dataclass
class ImageEntry:
    path: str
    texture: Texture
    preload_path: str | None = None

    @property
    def name(self) -> str:
        return image_name(self.path)


class TextureTable:
    """Deduplicated texture files of a material list, in sorted path order.

    Preload variants (``_s0.`` paths) are not images of their own; they are
    attached to the image they stand in for and resolve to its index.
    """

    def __init__(self, images: list[ImageEntry]) -> None:
        self.images = images
        self._index = {entry.path: i for i, entry in enumerate(images)}
        for i, entry in enumerate(images):
            if entry.preload_path is not None:
                self._index.setdefault(entry.preload_path, i)

    def index_of(self, path: str) -> int | None:
        return self._index.get(path)

    def resolve(
        self,
        material: Material,
        slot: str,
        *,
        warning_policy: WarningPolicy | None = None,
    ) -> int | None:
        """Texture index for a material slot; W04 when the slot is set but unresolved."""
        texture = material.get_texture(slot)
        if texture is None:
            return None
        index = self.index_of(texture.path)
        if index is None:
            emit_warning(
                "W04",
                f"Material {material.name!r} slot {slot!r}: texture {texture.path!r} "
                f"is not an exported image",
                policy=warning_policy,
            )
        return index

    @property
    def has_preload(self) -> bool:
        return any(entry.preload_path for entry in self.images)


def build_texture_table(materials: list[Material]) -> TextureTable:
    by_path: dict[str, Texture] = {}
    for material in materials:
        for texture in material.textures.values():
            by_path.setdefault(texture.path, texture)

    primary: list[str] = []
    preload: dict[str, str] = {}
    for path in sorted(by_path):
        if PRELOAD_MARKER in path:
            original = _strip_ext(path.replace(PRELOAD_MARKER, ".", 1))
            preload.setdefault(original, path)
        else:
            primary.append(path)

    return TextureTable(
        [
            ImageEntry(path=path, texture=by_path[path], preload_path=preload.get(_strip_ext(path)))
            for path in primary
        ]
    )


def build_sampler() -> pygltflib.Sampler:
    return pygltflib.Sampler(
        magFilter=LINEAR,
        minFilter=LINEAR,
        wrapS=CLAMP_TO_EDGE,
        wrapT=CLAMP_TO_EDGE,
    )


def build_image(entry: ImageEntry, *, flatten_uris: bool = False) -> pygltflib.Image:
    """Image object; ``flatten_uris`` points uris at copied files next to the output."""

    def uri(path: str) -> str:
        return posixpath.basename(path.replace("\\", "/")) if flatten_uris else path

    extensions: dict = {}
    if entry.preload_path is not None:
        extensions[PRELOAD_EXTENSION] = {"uri": uri(entry.preload_path)}
    if entry.texture.udim_mode:
        extensions[UDIM_EXTENSION] = {
            "tiles": list(entry.texture.udim_tiles),
            "url": entry.texture.udim_path or entry.path,
        }
    image = pygltflib.Image(name=entry.name, uri=uri(entry.path))
    if extensions:
        image.extensions = extensions
    return image


def build_texture(source: int) -> pygltflib.Texture:
    return pygltflib.Texture(sampler=0, source=source)


def build_pbr_extension(
    material: Material,
    table: TextureTable,
    *,
    warning_policy: WarningPolicy | None = None,
) -> dict:
    """Renderer-specific PBR parameters grouped as base/specular/transmission/
    subsurface/coat/emission, plus their texture indices."""
    ext: dict = {}
    for key in _PBR_SCALARS:
        ext[key] = material.get_float(f"ai_{key}")
    for key, suffixes in _PBR_VECTORS.items():
        ext[key] = [material.get_float(f"ai_{key}{s}") for s in suffixes]

    subsurface_type = int(material.get_float("ai_subsurfaceType"))
    if not 0 <= subsurface_type < len(SUBSURFACE_TYPES):
        subsurface_type = 0
    ext["subsurfaceType"] = SUBSURFACE_TYPES[subsurface_type]

    for key, slot in _PBR_TEXTURES.items():
        index = table.resolve(material, slot, warning_policy=warning_policy)
        if index is not None:
            ext[key] = {"index": index}
    return ext


def build_material(
    material: Material,
    table: TextureTable,
    *,
    texture_has_alpha: bool = False,
    warning_policy: WarningPolicy | None = None,
) -> pygltflib.Material:
    """glTF material with the PBR vendor extension attached.

    Alpha below 1 (or a base colour image with an alpha channel, when
    ``texture_has_alpha``) selects BLEND, otherwise OPAQUE.
    """
    base_color = [float(c) for c in material.base_color]
    pbr = pygltflib.PbrMetallicRoughness(
        baseColorFactor=base_color,
        metallicFactor=float(material.metallic),
        roughnessFactor=float(material.roughness),
    )
    base_index = table.resolve(material, "BaseColor", warning_policy=warning_policy)
    if base_index is not None:
        pbr.baseColorTexture = pygltflib.TextureInfo(index=base_index)

    blend = base_color[3] < 1.0 or texture_has_alpha
    gltf_material = pygltflib.Material(
        name=material.name,
        emissiveFactor=[float(c) for c in material.emission],
        pbrMetallicRoughness=pbr,
        alphaMode="BLEND" if blend else "OPAQUE",
        alphaCutoff=None,
    )
    normal_index = table.resolve(material, "Normal", warning_policy=warning_policy)
    if normal_index is not None:
        gltf_material.normalTexture = pygltflib.TextureInfo(index=normal_index)

    gltf_material.extensions = {
        PBR_EXTENSION: build_pbr_extension(material, table, warning_policy=warning_policy)
    }
    return gltf_material
