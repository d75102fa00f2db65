"""Unpack a binary GLB container into a ``.gltf`` document plus ``.bin`` buffer."""

from __future__ import annotations

import json
import struct
from pathlib import Path

from scenegltf.errors import ParseError

GLB_MAGIC = b"glTF"
GLB_VERSION = 2
CHUNK_TYPE_JSON = 0x4E4F534A
CHUNK_TYPE_BIN = 0x004E4942


def read_glb(data: bytes) -> tuple[dict, bytes | None]:
    """Split GLB bytes into the JSON document and the BIN chunk (if any)."""
    if len(data) < 12:
        raise ParseError("Invalid GLB: file too small")

    magic, version, total_length = struct.unpack_from("<4sII", data, 0)
    if magic != GLB_MAGIC:
        raise ParseError("Invalid GLB: bad magic")
    if version != GLB_VERSION:
        raise ParseError(f"Unsupported GLB version: {version} (expected {GLB_VERSION})")
    if total_length > len(data):
        raise ParseError("Invalid GLB: length exceeds file size")

    json_chunk: bytes | None = None
    bin_chunk: bytes | None = None
    offset = 12
    while offset < total_length:
        if offset + 8 > total_length:
            raise ParseError("Invalid GLB: truncated chunk header")
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += 8
        if offset + chunk_length > total_length:
            raise ParseError("Invalid GLB: truncated chunk data")
        chunk = data[offset : offset + chunk_length]
        offset += chunk_length

        if chunk_type == CHUNK_TYPE_JSON and json_chunk is None:
            json_chunk = chunk
        elif chunk_type == CHUNK_TYPE_BIN and bin_chunk is None:
            bin_chunk = chunk

    if json_chunk is None:
        raise ParseError("Invalid GLB: missing JSON chunk")
    try:
        document = json.loads(json_chunk.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError(f"Invalid GLB JSON chunk: {e}") from e
    if not isinstance(document, dict):
        raise ParseError("Invalid GLB: JSON root is not an object")
    return document, bin_chunk


def glb_to_gltf(src: str | Path, dst: str | Path, *, prettify: bool = True) -> list[Path]:
    """Write ``dst`` (JSON) and ``<dst stem>.bin`` from the GLB at ``src``.

    The embedded buffer (``buffers[0]`` without a uri) is pointed at the new
    ``.bin`` file. Returns the files written.
    """
    src = Path(src)
    dst = Path(dst)
    try:
        data = src.read_bytes()
    except OSError as e:
        raise ParseError(f"Cannot read file: {e}") from e

    document, bin_chunk = read_glb(data)
    written: list[Path] = []
    buffers = document.get("buffers") or []
    if bin_chunk is not None and buffers and "uri" not in buffers[0]:
        bin_path = dst.with_suffix(".bin")
        declared = buffers[0].get("byteLength", len(bin_chunk))
        bin_path.write_bytes(bin_chunk[:declared])
        buffers[0]["uri"] = bin_path.name
        written.append(bin_path)

    text = json.dumps(document, indent=2 if prettify else None)
    dst.write_text(text, encoding="utf-8")
    written.insert(0, dst)
    return written
