"""Tests for the texture table, images and materials."""

from __future__ import annotations

import warnings

import pytest

from scenegltf.errors import ValidationError
from scenegltf.materials import (
    PBR_EXTENSION,
    PRELOAD_EXTENSION,
    UDIM_EXTENSION,
    build_image,
    build_material,
    build_pbr_extension,
    build_sampler,
    build_texture_table,
    image_name,
)
from scenegltf.models import Material, Texture
from scenegltf.warning_policy import SceneGltfWarning, WarningPolicy


class TestImageName:
    def test_strips_directory_and_extension(self):
        assert image_name("tex/wood/oak.jpg") == "oak"

    def test_backslashes(self):
        assert image_name("C:\\tex\\oak.png") == "oak"


class TestTextureTable:
    def test_sorted_and_deduplicated(self):
        materials = [
            Material(name="a", textures={"BaseColor": "z.png", "Normal": "a.png"}),
            Material(name="b", textures={"BaseColor": "z.png"}),
        ]
        table = build_texture_table(materials)
        assert [e.path for e in table.images] == ["a.png", "z.png"]
        assert table.index_of("z.png") == 1

    def test_preload_attached_to_original(self, textured_scene):
        table = build_texture_table(textured_scene.materials)
        assert [e.path for e in table.images] == ["tex/bar_normal.png", "tex/foo.jpg"]
        foo = table.images[1]
        assert foo.preload_path == "tex/foo_s0.jpg"
        assert table.has_preload

    def test_preload_path_resolves_to_original(self, textured_scene):
        table = build_texture_table(textured_scene.materials)
        assert table.index_of("tex/foo_s0.jpg") == 1

    def test_orphan_preload_dropped(self):
        table = build_texture_table([Material(name="m", textures={"BaseColor": "x_s0.jpg"})])
        assert table.images == []
        assert not table.has_preload

    def test_unresolved_slot_warns(self):
        material = Material(name="m", textures={"BaseColor": "x_s0.jpg"})
        table = build_texture_table([material])
        with pytest.warns(SceneGltfWarning, match="W04"):
            assert table.resolve(material, "BaseColor") is None

    def test_unset_slot_silent(self):
        material = Material(name="m")
        table = build_texture_table([material])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            assert table.resolve(material, "BaseColor") is None


class TestImages:
    def test_preload_extension(self, textured_scene):
        table = build_texture_table(textured_scene.materials)
        image = build_image(table.images[1])
        assert image.name == "foo"
        assert image.uri == "tex/foo.jpg"
        assert image.extensions == {PRELOAD_EXTENSION: {"uri": "tex/foo_s0.jpg"}}

    def test_flattened_uris(self, textured_scene):
        table = build_texture_table(textured_scene.materials)
        image = build_image(table.images[1], flatten_uris=True)
        assert image.uri == "foo.jpg"
        assert image.extensions[PRELOAD_EXTENSION]["uri"] == "foo_s0.jpg"

    def test_udim_extension(self):
        texture = Texture(path="skin.1001.png", udim_tiles=[1001, 1002], udim_path="skin.<UDIM>.png")
        table = build_texture_table([Material(name="m", textures={"BaseColor": texture})])
        image = build_image(table.images[0])
        assert image.extensions[UDIM_EXTENSION] == {
            "tiles": [1001, 1002],
            "url": "skin.<UDIM>.png",
        }

    def test_plain_image_has_no_extensions(self):
        table = build_texture_table([Material(name="m", textures={"BaseColor": "a.png"})])
        assert not build_image(table.images[0]).extensions

    def test_sampler(self):
        sampler = build_sampler()
        assert sampler.magFilter == sampler.minFilter == 9729
        assert sampler.wrapS == sampler.wrapT == 33071


class TestMaterials:
    def test_opaque_defaults(self):
        material = Material(name="m", metallic=0.2, roughness=0.4)
        gltf = build_material(material, build_texture_table([material]))
        assert gltf.name == "m"
        assert gltf.alphaMode == "OPAQUE"
        assert gltf.pbrMetallicRoughness.metallicFactor == 0.2
        assert gltf.pbrMetallicRoughness.baseColorTexture is None
        assert PBR_EXTENSION in gltf.extensions

    def test_alpha_blend(self):
        material = Material(name="m", base_color=(1.0, 0.0, 0.0, 0.5))
        gltf = build_material(material, build_texture_table([material]))
        assert gltf.alphaMode == "BLEND"

    def test_texture_alpha_blend(self):
        material = Material(name="m")
        gltf = build_material(material, build_texture_table([material]), texture_has_alpha=True)
        assert gltf.alphaMode == "BLEND"

    def test_texture_slots(self, textured_scene):
        table = build_texture_table(textured_scene.materials)
        gltf = build_material(textured_scene.materials[1], table)
        assert gltf.pbrMetallicRoughness.baseColorTexture.index == 1
        assert gltf.normalTexture.index == 0

    def test_unresolved_texture_as_error(self):
        material = Material(name="m", textures={"Normal": "gone_s0.png"})
        policy = WarningPolicy(warn_as_error=frozenset({"W04"}))
        with pytest.raises(ValidationError, match="W04"):
            build_material(material, build_texture_table([material]), warning_policy=policy)


class TestPbrExtension:
    def test_scalars_and_vectors(self):
        material = Material(
            name="m",
            params={
                "ai_baseWeight": 0.8,
                "ai_specularColorR": 0.1,
                "ai_specularColorB": 0.3,
                "ai_coatNormalY": 1.0,
            },
        )
        ext = build_pbr_extension(material, build_texture_table([material]))
        assert ext["baseWeight"] == 0.8
        assert ext["coatWeight"] == 0.0
        assert ext["specularColor"] == [0.1, 0.0, 0.3]
        assert ext["coatNormal"] == [0.0, 1.0, 0.0]

    def test_subsurface_type(self):
        random_walk = Material(name="m", params={"ai_subsurfaceType": 1})
        out_of_range = Material(name="n", params={"ai_subsurfaceType": 7})
        table = build_texture_table([])
        assert build_pbr_extension(random_walk, table)["subsurfaceType"] == "randomwalk"
        assert build_pbr_extension(out_of_range, table)["subsurfaceType"] == "diffusion"

    def test_texture_indices(self):
        material = Material(
            name="m",
            textures={"ai_specularColor": "spec.png", "ai_opacity": "mask.png"},
        )
        ext = build_pbr_extension(material, build_texture_table([material]))
        assert ext["specularColorTexture"] == {"index": 1}
        assert ext["opacityTexture"] == {"index": 0}
        assert "coatColorTexture" not in ext
