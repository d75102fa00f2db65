"""YAML loading for scene documents and export option files."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from scenegltf.errors import ParseError
from scenegltf.models import SceneSpec
from scenegltf.options import ExportOptions

SUPPORTED_VERSION: tuple[int, int] = (1, 0)


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def _read_source_text(source: str | Path) -> str:
    """Read YAML from a path, or treat a string as YAML text."""
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}") from e
    return source


def load_yaml_data(source: str | Path, *, allow_empty: bool = False) -> dict:
    """Load a YAML mapping. An empty document yields ``{}`` when ``allow_empty``."""
    text = _read_source_text(source)
    try:
        data = _make_yaml().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e

    if data is None and allow_empty:
        return {}
    if not isinstance(data, dict):
        raise ParseError("Top-level YAML value must be a mapping")
    return data


def parse_scene(source: str | Path) -> SceneSpec:
    """Parse a scene document from a string or file path.

    Raises:
        ParseError: On YAML syntax errors, schema violations (including mesh
            array length mismatches), or unsupported versions.
    """
    data = load_yaml_data(source)

    version = data.get("version")
    if version is None:
        raise ParseError("Missing required field: version")
    data["version"] = str(version)
    _check_version(data["version"])

    try:
        return SceneSpec.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Schema validation failed:\n{e}") from e


def load_options(source: str | Path) -> ExportOptions:
    """Load export options. Missing keys keep their defaults."""
    data = load_yaml_data(source, allow_empty=True)
    try:
        return ExportOptions.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(f"Invalid export options:\n{e}") from e


def _check_version(version: str) -> None:
    """Reject malformed versions and versions newer than the loader understands."""
    try:
        major, minor = (int(part) for part in version.split("."))
    except ValueError:
        raise ParseError(f"Invalid version format: {version!r}") from None

    if (major, minor) > SUPPORTED_VERSION:
        latest = "{}.{}".format(*SUPPORTED_VERSION)
        raise ParseError(f"Unsupported version: {version!r} (latest supported is {latest})")
