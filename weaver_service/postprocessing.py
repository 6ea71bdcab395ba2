"""Validation and re-encoding of the composite returned by the model."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from . import config
from .genai_client import GeneratedImage, GenerationError

logger = logging.getLogger(__name__)

INVALID_OUTPUT_MESSAGE = "The AI failed to produce a valid image. Please try again."

FORMAT_PRESETS = {
    "png": {"format": "PNG", "mime_type": "image/png", "save_kwargs": {}},
    "jpeg": {"format": "JPEG", "mime_type": "image/jpeg", "save_kwargs": {"quality": 95}},
}


@dataclass
class FinalImage:
    data: bytes
    mime_type: str
    size: Tuple[int, int]  # (width, height)


def _reencode(image: Image.Image, preset: dict) -> bytes:
    if preset["format"] == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buf = BytesIO()
    image.save(buf, format=preset["format"], **preset["save_kwargs"])
    return buf.getvalue()


def _maybe_dump_debug(data: bytes, mime_type: str, prompt: Optional[str], debug_dir: Path) -> None:
    """Optionally write the prompt and composite when DEBUG is enabled."""
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
        extension = mime_type.split("/", 1)[-1] or "png"
        (debug_dir / f"{stamp}.{extension}").write_bytes(data)
        if prompt is not None:
            (debug_dir / f"{stamp}.prompt.txt").write_text(prompt, encoding="utf-8")
        logger.debug("postprocess: wrote debug outputs to %s", debug_dir)
    except OSError as exc:
        logger.warning("postprocess: failed to write debug outputs: %s", exc)


def finalize_output(generated: GeneratedImage, prompt: Optional[str] = None) -> FinalImage:
    """
    Make sure the model output is a decodable image and apply OUTPUT_FORMAT.

    Raises:
        GenerationError: when the bytes are not an image.
    """
    settings = config.get_settings()
    if not generated.mime_type.startswith("image/"):
        logger.error("Model returned non-image media type %s", generated.mime_type)
        raise GenerationError(INVALID_OUTPUT_MESSAGE)

    try:
        image = Image.open(BytesIO(generated.data))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        logger.error("Model output could not be decoded as an image: %s", exc)
        raise GenerationError(INVALID_OUTPUT_MESSAGE) from exc

    data, mime_type = generated.data, generated.mime_type
    preset = FORMAT_PRESETS.get(settings.output_format)
    if preset is not None and preset["mime_type"] != mime_type:
        data = _reencode(image, preset)
        mime_type = preset["mime_type"]
        logger.debug("postprocess: re-encoded %s output as %s", generated.mime_type, mime_type)

    if settings.debug:
        _maybe_dump_debug(data, mime_type, prompt, Path(settings.debug_output_dir))

    return FinalImage(data=data, mime_type=mime_type, size=image.size)
