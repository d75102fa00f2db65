"""Build manifest for CLI exports."""

from __future__ import annotations

import hashlib
import platform
from datetime import datetime, timezone
from functools import partial
from pathlib import Path

from scenegltf import __version__

_CHUNK_SIZE = 1 << 16


def _digest(path: Path) -> str:
    sha = hashlib.sha256()
    with path.open("rb") as stream:
        for block in iter(partial(stream.read, _CHUNK_SIZE), b""):
            sha.update(block)
    return sha.hexdigest()


def _describe(path: Path) -> dict:
    """Path, size and SHA-256 of one file."""
    return {"path": str(path), "bytes": path.stat().st_size, "sha256": _digest(path)}


def build_manifest(
    *,
    input_path: Path,
    output_paths: list[Path],
    options_path: Path | None = None,
    command_args: list[str] | None = None,
) -> dict:
    """Describe an export run: tool, inputs and every file written.

    Call after the export has written its outputs; paths that no longer
    exist are left out.
    """
    record: dict = {
        "manifest_version": 1,
        "tool": {
            "name": "scenegltf",
            "version": __version__,
            "python": platform.python_version(),
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": _describe(input_path),
        "outputs": [_describe(p) for p in output_paths if p.exists()],
    }
    if options_path is not None:
        record["options"] = _describe(options_path)
    if command_args is not None:
        record["command_args"] = list(command_args)
    return record
