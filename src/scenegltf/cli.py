"""Click CLI entry point for the scenegltf exporter."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from scenegltf import __version__
from scenegltf.errors import SceneGltfError
from scenegltf.exporter import build_document, export_scene
from scenegltf.glb import glb_to_gltf
from scenegltf.manifest import build_manifest
from scenegltf.options import ExportOptions
from scenegltf.parser import load_options, parse_scene
from scenegltf.warning_policy import WarningPolicy

_SCENE_SUFFIXES = (".scene.yaml", ".scene.yml", ".yaml", ".yml")


def _build_warning_policy(
    warn_as_error: str | None, suppress_warning: str | None
) -> WarningPolicy | None:
    """Parse CLI warning options into a WarningPolicy, or None if unset."""
    if warn_as_error is None and suppress_warning is None:
        return None
    try:
        return WarningPolicy.from_code_lists(warn_as_error, suppress_warning)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _default_output(scene_file: Path) -> Path:
    stem = scene_file.name
    for suffix in _SCENE_SUFFIXES:
        if stem.endswith(suffix):
            stem = stem[: -len(suffix)]
            break
    return scene_file.parent / f"{stem}.gltf"


def _resolve_options(
    options_file: Path | None,
    *,
    output_buffer: str | None = None,
    share_buffers: bool | None = None,
    on_codec_error: str | None = None,
    vrm: bool = False,
) -> ExportOptions:
    """Options file (or defaults) with command-line overrides applied."""
    options = load_options(options_file) if options_file is not None else ExportOptions()
    overrides: dict = {}
    if output_buffer is not None:
        overrides["output_buffer"] = output_buffer
    if share_buffers is not None:
        overrides["share_compressed_buffer"] = share_buffers
    if on_codec_error is not None:
        overrides["on_codec_error"] = on_codec_error
    if vrm:
        overrides["vrm_export"] = True
    return options.model_copy(update=overrides)


@click.group()
@click.version_option(version=__version__, prog_name="scenegltf")
def main() -> None:
    """scenegltf: export YAML scene graphs to glTF 2.0."""


@main.command()
@click.argument("scene_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output .gltf path. Defaults to the scene name with .gltf extension.",
)
@click.option(
    "--options",
    "options_file",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML file with export options.",
)
@click.option(
    "--output-buffer",
    type=click.Choice(["binary", "draco", "both"]),
    default=None,
    help="Plain buffers, Draco-compressed meshes, or both.",
)
@click.option(
    "--share-buffers/--no-share-buffers",
    "share_buffers",
    default=None,
    help="Put compressed blobs in the main buffer or in one buffer per mesh.",
)
@click.option(
    "--on-codec-error",
    type=click.Choice(["fail", "skip"]),
    default=None,
    help="Abort the export or skip the mesh when compression fails.",
)
@click.option(
    "--vrm",
    is_flag=True,
    default=False,
    help="Write humanoid avatar (VRM) metadata.",
)
@click.option(
    "--warn-as-error",
    "warn_as_error",
    type=str,
    default=None,
    help="Comma-separated W-codes to treat as errors (e.g. W01,W02).",
)
@click.option(
    "--suppress-warning",
    "suppress_warning",
    type=str,
    default=None,
    help="Comma-separated W-codes to suppress (e.g. W04).",
)
@click.option(
    "--emit-manifest",
    "emit_manifest",
    type=click.Path(path_type=Path),
    default=None,
    help="Write a JSON build manifest to this path after a successful export.",
)
def export(
    scene_file: Path,
    output: Path | None,
    options_file: Path | None = None,
    output_buffer: str | None = None,
    share_buffers: bool | None = None,
    on_codec_error: str | None = None,
    vrm: bool = False,
    warn_as_error: str | None = None,
    suppress_warning: str | None = None,
    emit_manifest: Path | None = None,
) -> None:
    """Export a YAML scene document to glTF."""
    warning_policy = _build_warning_policy(warn_as_error, suppress_warning)
    if output is None:
        output = _default_output(scene_file)

    try:
        options = _resolve_options(
            options_file,
            output_buffer=output_buffer,
            share_buffers=share_buffers,
            on_codec_error=on_codec_error,
            vrm=vrm,
        )
        scene = parse_scene(scene_file)
        written = export_scene(scene, output, options, warning_policy=warning_policy)
    except SceneGltfError as e:
        raise click.ClickException(str(e))

    if emit_manifest is not None:
        manifest = build_manifest(
            input_path=scene_file,
            output_paths=written,
            options_path=options_file,
            command_args=sys.argv[1:],
        )
        emit_manifest.write_text(json.dumps(manifest, indent=2), encoding="utf-8")
    click.echo(f"Exported: {output} ({len(written)} files)")


@main.command()
@click.argument("scene_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "--options",
    "options_file",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML file with export options.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Summary output format.",
)
def inspect(scene_file: Path, options_file: Path | None = None, output_format: str = "text") -> None:
    """Register a scene in memory and summarise what would be exported."""
    try:
        options = _resolve_options(options_file)
        scene = parse_scene(scene_file)
        _document, registerer, table = build_document(scene, _default_output(scene_file).stem, options)
    except SceneGltfError as e:
        raise click.ClickException(str(e))

    summary = {
        "nodes": len(registerer.nodes),
        "meshes": len(registerer.meshes),
        "accessors": len(registerer.accessors),
        "bufferViews": len(registerer.buffer_views),
        "buffers": {b.uri: b.byte_length for b in registerer.buffers},
        "joints": [p for skin in registerer.skins for p in skin.joint_paths],
        "images": [entry.path for entry in table.images],
    }
    if output_format == "json":
        click.echo(json.dumps(summary, indent=2))
        return
    for key, value in summary.items():
        if isinstance(value, dict):
            click.echo(f"{key}:")
            for name, size in value.items():
                click.echo(f"  {name}: {size} bytes")
        elif isinstance(value, list):
            click.echo(f"{key}: {', '.join(value) if value else '-'}")
        else:
            click.echo(f"{key}: {value}")


@main.command()
@click.argument("input_file", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    default=None,
    help="Output .gltf path. Defaults to the input name with .gltf extension.",
)
def unpack(input_file: Path, output: Path | None = None) -> None:
    """Split a .glb file into .gltf JSON and a .bin buffer."""
    if output is None:
        output = input_file.with_suffix(".gltf")
    try:
        written = glb_to_gltf(input_file, output)
    except SceneGltfError as e:
        raise click.ClickException(str(e))
    except OSError as e:
        raise click.ClickException(f"Cannot write {output}: {e}") from e
    click.echo(f"Unpacked: {', '.join(str(p) for p in written)}")
