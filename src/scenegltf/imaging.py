"""Texture image conversion, resizing and alpha detection via Pillow."""

from __future__ import annotations

import math
import tempfile
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from scenegltf.errors import ImageError

_TIFF_SUFFIXES = frozenset({".tif", ".tiff"})
_FORMATS: dict[str, str] = {
    ".jpg": "JPEG",
    ".jpeg": "JPEG",
    ".png": "PNG",
    ".bmp": "BMP",
    ".tif": "TIFF",
    ".tiff": "TIFF",
}


def _next_power_of_two(n: int) -> int:
    return 1 << max(0, math.ceil(math.log2(max(n, 1))))


def _is_power_of_two(n: int) -> bool:
    return n > 0 and n & (n - 1) == 0


def needs_resize(
    width: int,
    height: int,
    *,
    max_size: int = 0,
    power_of_two: bool = False,
    square: bool = False,
) -> bool:
    if max_size and (max_size <= width or max_size <= height):
        return True
    if power_of_two and not (_is_power_of_two(width) and _is_power_of_two(height)):
        return True
    return square and width != height


def target_dimensions(
    width: int,
    height: int,
    *,
    target_size: int = 0,
    power_of_two: bool = False,
    square: bool = False,
) -> tuple[int, int]:
    """Scale so the longer side becomes ``target_size``, then round up to
    powers of two, then pad the shorter side up to the longer one."""
    if target_size:
        factor = target_size / max(width, height)
        width = max(1, int(width * factor))
        height = max(1, int(height * factor))
    if power_of_two:
        width = _next_power_of_two(width)
        height = _next_power_of_two(height)
    if square:
        width = height = max(width, height)
    return width, height


def _save(image: Image.Image, dst: Path, quality: float) -> None:
    fmt = _FORMATS.get(dst.suffix.lower())
    if fmt is None:
        raise ImageError(f"Unsupported output image format: {dst.suffix!r}")
    kwargs: dict = {}
    if fmt == "JPEG":
        kwargs["quality"] = min(100, max(0, int(quality * 100)))
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
    image.save(dst, format=fmt, **kwargs)


def _convert(
    src: Path,
    dst: Path,
    *,
    max_size: int,
    target_size: int,
    power_of_two: bool,
    square: bool,
    quality: float,
) -> None:
    try:
        with Image.open(src) as image:
            image.load()
            width, height = image.size
            if needs_resize(
                width, height, max_size=max_size, power_of_two=power_of_two, square=square
            ):
                size = target_dimensions(
                    width,
                    height,
                    target_size=target_size or max_size,
                    power_of_two=power_of_two,
                    square=square,
                )
                out = image.resize(size, Image.Resampling.LANCZOS)
            else:
                out = image.copy()
    except (OSError, UnidentifiedImageError) as e:
        raise ImageError(f"Cannot read image {src}: {e}") from e

    try:
        _save(out, dst, quality)
    except OSError as e:
        raise ImageError(f"Cannot write image {dst}: {e}") from e


def convert_or_resize_image(
    src: str | Path,
    dst: str | Path,
    *,
    max_size: int = 0,
    target_size: int = 0,
    power_of_two: bool = False,
    square: bool = False,
    quality: float = 0.9,
) -> None:
    """Re-encode ``src`` into ``dst``, resizing when the constraints demand it.

    The output format follows the ``dst`` extension (jpg, png, bmp or tiff). TIFF
    sources are first converted to a temporary PNG that is removed on every
    exit path.

    Raises:
        ImageError: If the source cannot be read or the destination written.
    """
    src = Path(src)
    dst = Path(dst)
    options = dict(
        max_size=max_size,
        target_size=target_size,
        power_of_two=power_of_two,
        square=square,
        quality=quality,
    )
    if src.suffix.lower() not in _TIFF_SUFFIXES:
        _convert(src, dst, **options)
        return

    with tempfile.TemporaryDirectory() as tmp:
        intermediate = Path(tmp) / f"{src.stem}.png"
        _convert(
            src,
            intermediate,
            max_size=0,
            target_size=0,
            power_of_two=False,
            square=False,
            quality=1.0,
        )
        _convert(intermediate, dst, **options)


def has_alpha_channel(path: str | Path) -> bool:
    """True if the image has more than three bands; False if unreadable."""
    try:
        with Image.open(path) as image:
            return len(image.getbands()) > 3
    except (OSError, UnidentifiedImageError):
        return False
