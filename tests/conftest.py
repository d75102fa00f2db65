"""Shared fixtures for scenegltf tests."""

from __future__ import annotations

import pytest

from scenegltf.compression import EncodedMesh
from scenegltf.errors import CodecError
from scenegltf.models import Material, Mesh, MorphTarget, Node, SkinWeights, Texture

TRIANGLE_YAML = """\
version: "1.0"
root:
  name: scene
  children:
    - name: tri
      transform:
        translation: [1.0, 2.0, 3.0]
      mesh:
        name: tri_mesh
        positions: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
        normals: [[0, 0, 2], [0, 0, 1], [0, 0, 0.5]]
        indices: [0, 1, 2]
"""

SKINNED_YAML = """\
version: "1.0"
root:
  name: scene
  children:
    - name: hips
      transform:
        translation: [0.0, 1.0, 0.0]
      children:
        - name: spine
          transform:
            translation: [0.0, 0.5, 0.0]
    - name: body
      mesh:
        name: body_mesh
        positions: [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
        normals: [[0, 0, 1], [0, 0, 1], [0, 0, 1]]
        indices: [0, 1, 2]
        skin_weights:
          weights:
            - {/scene/hips: 1.0}
            - {/scene/hips: 0.25, /scene/hips/spine: 0.75}
            - {/scene/hips/spine: 2.0}
          bind_matrices:
            /scene/hips:
              - [1, 0, 0, 0]
              - [0, 1, 0, -1]
              - [0, 0, 1, 0]
              - [0, 0, 0, 1]
"""


@pytest.fixture
def triangle_yaml() -> str:
    return TRIANGLE_YAML


@pytest.fixture
def skinned_yaml() -> str:
    return SKINNED_YAML


@pytest.fixture
def make_mesh():
    """Factory for a single-triangle mesh; keyword arguments override fields."""

    def _make(name: str = "tri_mesh", **overrides) -> Mesh:
        fields = dict(
            name=name,
            positions=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)],
            normals=[(0.0, 0.0, 1.0)] * 3,
            indices=[0, 1, 2],
        )
        fields.update(overrides)
        return Mesh(**fields)

    return _make


@pytest.fixture
def triangle_scene(make_mesh) -> Node:
    return Node(name="scene", children=[Node(name="tri", mesh=make_mesh())])


@pytest.fixture
def two_mesh_scene(make_mesh) -> Node:
    return Node(
        name="scene",
        children=[
            Node(name="good", mesh=make_mesh("good_mesh")),
            Node(name="bad", mesh=make_mesh("bad_mesh")),
        ],
    )


@pytest.fixture
def skinned_scene(make_mesh) -> Node:
    weights = SkinWeights(
        weights=[
            {"/scene/hips": 1.0},
            {"/scene/hips": 0.25, "/scene/hips/spine": 0.75},
            {"/scene/hips/spine": 2.0},
        ],
        bind_matrices={
            "/scene/hips": (
                (1.0, 0.0, 0.0, 0.0),
                (0.0, 1.0, 0.0, -1.0),
                (0.0, 0.0, 1.0, 0.0),
                (0.0, 0.0, 0.0, 1.0),
            )
        },
    )
    return Node(
        name="scene",
        children=[
            Node(name="hips", children=[Node(name="spine")]),
            Node(name="body", mesh=make_mesh("body_mesh", skin_weights=weights)),
        ],
    )


@pytest.fixture
def morph_scene(make_mesh) -> Node:
    target = MorphTarget(
        positions=[(0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (0.0, 1.0, 1.0)],
        normals=[(0.0, 1.0, 0.0)] * 3,
        weight=0.25,
    )
    return Node(
        name="scene",
        children=[Node(name="face", mesh=make_mesh("face_mesh", morph_targets=[target]))],
    )


@pytest.fixture
def textured_scene(make_mesh) -> Node:
    materials = [
        Material(
            name="preview",
            textures={"BaseColor": Texture(path="tex/foo_s0.jpg")},
        ),
        Material(
            name="full",
            base_color=(1.0, 1.0, 1.0, 0.5),
            textures={
                "BaseColor": Texture(path="tex/foo.jpg"),
                "Normal": Texture(path="tex/bar_normal.png"),
            },
        ),
    ]
    return Node(
        name="scene",
        materials=materials,
        children=[Node(name="tri", mesh=make_mesh(materials=[1]))],
    )


class FakeCodec:
    """Codec double: fixed blob per mesh, ``CodecError`` for the named meshes."""

    def __init__(
        self,
        blob: bytes = b"dracoblob",
        failing: tuple[str, ...] = (),
        attributes: dict[str, int] | None = None,
    ) -> None:
        self.blob = blob
        self.attributes = attributes if attributes is not None else {"NORMAL": 0, "POSITION": 1}
        self.failing = failing
        self.calls: list[str] = []

    def __call__(self, payload) -> EncodedMesh:
        self.calls.append(payload.name)
        if payload.name in self.failing:
            raise CodecError(f"cannot encode {payload.name}")
        return EncodedMesh(data=self.blob, attributes=dict(self.attributes))


@pytest.fixture
def fake_codec():
    """Factory for :class:`FakeCodec` instances."""
    return FakeCodec
