"""Export options (pydantic v2)."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from scenegltf import __version__

OutputBuffer = Literal["binary", "draco", "both"]


class VrmMeta(BaseModel):
    """Avatar metadata written into the VRM extension."""

    model_config = ConfigDict(extra="forbid")

    title: str = ""
    version: str = ""
    author: str = ""
    contact_information: str = ""
    reference: str = ""
    allowed_user: Literal["OnlyAuthor", "ExplictlyLicensedPerson", "Everyone"] = "Everyone"
    violent_usage: bool = True
    sexual_usage: bool = True
    commercial_usage: bool = True
    other_permission_url: str = ""
    license_name: str = ""
    other_license_url: str = ""


class TextureOptions(BaseModel):
    """Copying and resizing of referenced texture files."""

    model_config = ConfigDict(extra="forbid")

    copy_files: bool = False
    source_dir: Path | None = None  # relative texture paths resolve against this
    max_size: int = Field(default=0, ge=0)
    target_size: int = Field(default=0, ge=0)
    power_of_two: bool = False
    square: bool = False
    quality: float = Field(default=0.9, ge=0.0, le=1.0)
    alpha_from_texture: bool = False


class ExportOptions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output_buffer: OutputBuffer = "binary"
    share_compressed_buffer: bool = True
    on_codec_error: Literal["fail", "skip"] = "fail"
    make_preload_texture: bool = False
    vrm_export: bool = False
    vrm: VrmMeta = Field(default_factory=VrmMeta)
    textures: TextureOptions = Field(default_factory=TextureOptions)
    prettify: bool = True
    generator: str = f"scenegltf {__version__}"

    @property
    def writes_plain(self) -> bool:
        return self.output_buffer in ("binary", "both")

    @property
    def writes_compressed(self) -> bool:
        return self.output_buffer in ("draco", "both")

    @property
    def compressed_only(self) -> bool:
        return self.output_buffer == "draco"
