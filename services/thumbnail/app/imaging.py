"""
Image transformer — decode, bound-resize and re-encode with Pillow.

The output keeps the input's format and aspect ratio and never exceeds the
requested box.  Resampling is nearest-neighbour and images smaller than the
box are left at their original size.

All functions are pure: they hold no module state and may run concurrently in
executor threads.
"""
from __future__ import annotations

import io

from PIL import Image

from app.exceptions import DecodeError

# Formats we read and write back unchanged (Pillow format names)
SUPPORTED_FORMATS: frozenset[str] = frozenset({"JPEG", "PNG", "GIF", "WEBP", "BMP"})

# Multi-picture JPEGs (phone photos with a depth map or gain map) read as MPO;
# only the primary picture is kept and it is written back as plain JPEG
_FORMAT_ALIASES = {"MPO": "JPEG"}

# Modes JPEG can store as-is; everything else is flattened to RGB
_JPEG_MODES = ("RGB", "L", "CMYK")

DEFAULT_JPEG_QUALITY = 75

# What Pillow raises for unreadable, truncated or oversized input
_DECODE_ERRORS = (OSError, EOFError, SyntaxError, ValueError, Image.DecompressionBombError)


def decode(data: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded raster. Raises DecodeError."""
    try:
        image = Image.open(io.BytesIO(data))
    except _DECODE_ERRORS as exc:
        raise DecodeError(f"Cannot identify image: {exc}") from exc

    try:
        fmt = _FORMAT_ALIASES.get(image.format, image.format)
        if fmt not in SUPPORTED_FORMATS:
            raise DecodeError(f"Unsupported image format: {image.format}")
        image.load()
        image.format = fmt
    except DecodeError:
        image.close()
        raise
    except _DECODE_ERRORS as exc:
        image.close()
        raise DecodeError(f"Corrupt {image.format} image: {exc}") from exc
    return image


def resize(image: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Return a new raster that fits inside max_width x max_height."""
    thumb = image.copy()
    thumb.thumbnail((max_width, max_height), Image.NEAREST)
    return thumb


def encode(image: Image.Image, fmt: str, *, jpeg_quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """Encode a raster to bytes in the given Pillow format."""
    options: dict[str, object] = {}
    if fmt == "JPEG":
        if image.mode not in _JPEG_MODES:
            image = image.convert("RGB")
        options["quality"] = jpeg_quality

    with io.BytesIO() as buf:
        image.save(buf, format=fmt, **options)
        return buf.getvalue()


def content_type(fmt: str) -> str:
    """MIME type for a Pillow format name."""
    if fmt not in Image.MIME:
        Image.init()
    return Image.MIME.get(fmt, "application/octet-stream")


def resize_bytes(
    data: bytes,
    fmt: str,
    max_width: int,
    max_height: int,
    *,
    jpeg_quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes:
    """Decode, bound-resize and re-encode in one call.

    ``fmt`` is the expected format of ``data``; a mismatch raises DecodeError
    so the output is never silently written in a different format.
    """
    source = decode(data)
    try:
        if source.format != fmt:
            raise DecodeError(f"Expected {fmt} image, got {source.format}")
        thumb = resize(source, max_width, max_height)
    finally:
        source.close()
    try:
        return encode(thumb, fmt, jpeg_quality=jpeg_quality)
    finally:
        thumb.close()
