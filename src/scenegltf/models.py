"""Pydantic v2 models for the input scene graph."""

from __future__ import annotations

from collections.abc import Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator

Vec2 = tuple[float, float]
Vec3 = tuple[float, float, float]
Vec4 = tuple[float, float, float, float]
# Four rows; translation lives in the last column.
Mat4 = tuple[Vec4, Vec4, Vec4, Vec4]

IDENTITY_MAT4: Mat4 = (
    (1.0, 0.0, 0.0, 0.0),
    (0.0, 1.0, 0.0, 0.0),
    (0.0, 0.0, 1.0, 0.0),
    (0.0, 0.0, 0.0, 1.0),
)


class Transform(BaseModel):
    model_config = ConfigDict(extra="forbid")

    matrix: Mat4 | None = None
    translation: Vec3 | None = None
    rotation: Vec4 | None = None  # quaternion (x, y, z, w)
    scale: Vec3 | None = None

    @model_validator(mode="after")
    def _check_representation(self) -> Transform:
        trs = (self.translation, self.rotation, self.scale)
        if self.matrix is not None and any(v is not None for v in trs):
            raise ValueError(
                "Transform must use either matrix or translation/rotation/scale, not both"
            )
        return self

    @property
    def is_trs(self) -> bool:
        return self.matrix is None

    @property
    def trs(self) -> tuple[Vec3, Vec4, Vec3]:
        """TRS parts with identity defaults for the missing ones."""
        return (
            self.translation or (0.0, 0.0, 0.0),
            self.rotation or (0.0, 0.0, 0.0, 1.0),
            self.scale or (1.0, 1.0, 1.0),
        )


class Texture(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str
    udim_tiles: list[int] = Field(default_factory=list)
    udim_path: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _coerce_plain_path(cls, data: object) -> object:
        if isinstance(data, str):
            return {"path": data}
        return data

    @property
    def udim_mode(self) -> bool:
        return bool(self.udim_tiles)


class Material(BaseModel):
    """Surface description.

    ``params`` holds renderer-specific scalars (``ai_baseWeight``,
    ``ai_specularColorR``...) and ``textures`` maps slot names (``BaseColor``,
    ``Normal``, ``ai_specularColor``...) to texture files.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    base_color: Vec4 = (1.0, 1.0, 1.0, 1.0)
    emission: Vec3 = (0.0, 0.0, 0.0)
    metallic: float = 0.0
    roughness: float = 1.0
    params: dict[str, float] = Field(default_factory=dict)
    textures: dict[str, Texture] = Field(default_factory=dict)

    def get_float(self, key: str) -> float:
        return float(self.params.get(key, 0.0))

    def get_texture(self, slot: str) -> Texture | None:
        return self.textures.get(slot)


class SkinWeights(BaseModel):
    model_config = ConfigDict(extra="forbid")

    weights: list[dict[str, float]]  # per vertex: joint path -> weight
    bind_matrices: dict[str, Mat4] = Field(default_factory=dict)

    def joint_paths(self) -> set[str]:
        """All joint paths referenced by any vertex."""
        paths: set[str] = set()
        for vertex_weights in self.weights:
            paths.update(vertex_weights)
        return paths


class MorphTarget(BaseModel):
    model_config = ConfigDict(extra="forbid")

    positions: list[Vec3]
    normals: list[Vec3] = Field(default_factory=list)
    weight: float = 0.0


class Mesh(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    positions: list[Vec3]
    normals: list[Vec3] = Field(default_factory=list)
    texcoords: list[Vec2] = Field(default_factory=list)
    indices: list[int]
    materials: list[int] = Field(default_factory=list)
    skin_weights: SkinWeights | None = None
    morph_targets: list[MorphTarget] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_array_shapes(self) -> Mesh:
        n = len(self.positions)
        if len(self.normals) != n:
            raise ValueError(
                f"Mesh {self.name!r}: {len(self.normals)} normals for {n} positions"
            )
        if self.texcoords and len(self.texcoords) != n:
            raise ValueError(
                f"Mesh {self.name!r}: {len(self.texcoords)} texcoords for {n} positions"
            )
        if len(self.indices) % 3 != 0:
            raise ValueError(
                f"Mesh {self.name!r}: index count {len(self.indices)} is not a multiple of 3"
            )
        for i in self.indices:
            if i < 0 or i >= n:
                raise ValueError(f"Mesh {self.name!r}: index {i} out of range [0, {n})")
        if self.skin_weights is not None and len(self.skin_weights.weights) != n:
            raise ValueError(
                f"Mesh {self.name!r}: skin weights cover {len(self.skin_weights.weights)} "
                f"vertices, expected {n}"
            )
        for t, target in enumerate(self.morph_targets):
            if len(target.positions) != n:
                raise ValueError(
                    f"Mesh {self.name!r}: morph target {t} has {len(target.positions)} "
                    f"positions, expected {n}"
                )
            if target.normals and len(target.normals) != n:
                raise ValueError(
                    f"Mesh {self.name!r}: morph target {t} has {len(target.normals)} "
                    f"normals, expected {n}"
                )
        return self


class Node(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    path: str | None = None
    transform: Transform = Field(default_factory=Transform)
    mesh: Mesh | None = None
    materials: list[Material] = Field(default_factory=list)
    children: list[Node] = Field(default_factory=list)

    def effective_path(self, parent_path: str = "") -> str:
        """Explicit ``path``, else the parent's path joined with this node's name."""
        if self.path is not None:
            return self.path
        return f"{parent_path}/{self.name}"

    def walk(self, parent_path: str = "") -> Iterator[tuple[Node, str]]:
        """Yield ``(node, effective path)`` depth-first, parent before children."""
        path = self.effective_path(parent_path)
        yield self, path
        for child in self.children:
            yield from child.walk(path)


class SceneSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: str
    root: Node


Node.model_rebuild()
