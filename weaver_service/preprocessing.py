"""
Input image loading and preprocessing.

Images arrive as data URIs from the browser page, or as http(s) URLs when
ALLOW_URL_SOURCES is switched on.
Each one is decoded once with Pillow to make sure it really is an image,
rotated upright from its EXIF orientation (phone camera captures), and
resized by the longest edge so the model request stays small.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError
import requests

from . import config
from .data_uri import is_image_data_uri, parse_data_uri

logger = logging.getLogger(__name__)

_EXIF_ORIENTATION = 0x0112
_DOWNLOAD_CHUNK_BYTES = 64 * 1024

# Formats the model accepts as-is. MPO is a multi-frame JPEG from phone cameras.
_PASSTHROUGH_MIME = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "WEBP": "image/webp",
}


@dataclass
class SourceImage:
    data: bytes
    mime_type: str


@dataclass
class PreparedImage:
    data: bytes
    mime_type: str
    orig_size: Tuple[int, int]  # (width, height)
    size: Tuple[int, int]


def _compute_resize_dims(width: int, height: int, max_long_edge: int) -> Tuple[int, int]:
    """Preserve aspect ratio while constraining the longest edge."""
    if max_long_edge <= 0:
        return width, height
    long_edge = max(width, height)
    if long_edge <= max_long_edge:
        return width, height
    scale = max_long_edge / long_edge
    return max(1, round(width * scale)), max(1, round(height * scale))


def _download_image(url: str, timeout: int, max_bytes: int, label: str) -> SourceImage:
    """Stream a remote image, giving up as soon as it exceeds `max_bytes`."""
    too_large = f"{label} image is too large."
    with requests.get(url, timeout=(5, timeout), stream=True) as resp:
        resp.raise_for_status()
        declared = resp.headers.get("Content-Length", "")
        if declared.isdigit() and int(declared) > max_bytes:
            raise ValueError(too_large)

        chunks = []
        received = 0
        for chunk in resp.iter_content(chunk_size=_DOWNLOAD_CHUNK_BYTES):
            received += len(chunk)
            if received > max_bytes:
                raise ValueError(too_large)
            chunks.append(chunk)
        mime_type = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
    return SourceImage(data=b"".join(chunks), mime_type=mime_type)


def load_image_source(value: object, label: str) -> SourceImage:
    """
    Resolve a data URI (or, when ALLOW_URL_SOURCES is on, an http(s) URL)
    into raw image bytes.

    `label` is the user-facing name ("Foreground", "Background") used in
    error messages.

    Raises:
        ValueError: when the source is missing, malformed, not an image, or
            larger than MAX_IMAGE_BYTES.
    """
    settings = config.get_settings()
    invalid = f"{label} image is missing or invalid."

    if (
        settings.allow_url_sources
        and isinstance(value, str)
        and value.startswith(("http://", "https://"))
    ):
        try:
            source = _download_image(
                value, settings.request_timeout_seconds, settings.max_image_bytes, label
            )
        except requests.RequestException as exc:
            logger.warning("Failed to download %s image from %s: %s", label.lower(), value, exc)
            raise ValueError(f"Could not download {label.lower()} image") from exc
        if source.mime_type and not source.mime_type.startswith("image/"):
            raise ValueError(invalid)
    else:
        if not is_image_data_uri(value):
            raise ValueError(invalid)
        try:
            parsed = parse_data_uri(value)
        except ValueError as exc:
            raise ValueError(invalid) from exc
        source = SourceImage(data=parsed.data, mime_type=parsed.mime_type)

    if len(source.data) > settings.max_image_bytes:
        raise ValueError(f"{label} image is too large.")
    return source


def prepare_image(
    image_bytes: bytes, max_long_edge: int, max_pixels: Optional[int] = None
) -> PreparedImage:
    """
    Decode, orient and downscale an image for the model request.

    The original bytes are passed through untouched only for PNG, JPEG and
    WEBP inputs that need no rotation or resize; everything else is
    re-encoded as PNG or JPEG.
    """
    if max_pixels is None:
        max_pixels = config.get_settings().max_input_pixels

    try:
        image = Image.open(BytesIO(image_bytes))
        width, height = image.size
        if max_pixels > 0 and width * height > max_pixels:
            raise ValueError("Invalid image data")
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValueError("Invalid image data") from exc

    source_format = image.format or ""
    orig_size = image.size
    rotated = image.getexif().get(_EXIF_ORIENTATION, 1) not in (0, 1)
    upright = ImageOps.exif_transpose(image) if rotated else image
    new_w, new_h = _compute_resize_dims(upright.width, upright.height, max_long_edge)

    resized = (new_w, new_h) != upright.size
    if not rotated and not resized and source_format in _PASSTHROUGH_MIME:
        return PreparedImage(
            data=image_bytes,
            mime_type=_PASSTHROUGH_MIME[source_format],
            orig_size=orig_size,
            size=orig_size,
        )

    if resized:
        upright = upright.resize((new_w, new_h), Image.LANCZOS)
        logger.debug("Resized input image from %s to %s", orig_size, upright.size)

    buf = BytesIO()
    if upright.mode in ("RGBA", "LA", "P", "PA"):
        upright.save(buf, format="PNG")
        mime_type = "image/png"
    else:
        upright.convert("RGB").save(buf, format="JPEG", quality=95)
        mime_type = "image/jpeg"
    return PreparedImage(data=buf.getvalue(), mime_type=mime_type, orig_size=orig_size, size=upright.size)
