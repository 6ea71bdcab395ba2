"""
High-level weaving pipeline.

`weave_images` is the main entry point used by both the HTTP API and the
local CLI. It keeps orchestration simple:
sources in -> preprocessing -> prompt -> model -> validation -> data URI out.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Optional, Sequence

from . import config
from .data_uri import download_filename, to_data_uri
from .genai_client import generate_image
from .postprocessing import finalize_output
from .preprocessing import PreparedImage, load_image_source, prepare_image
from .prompts import WeaveMode, build_prompt
from .storage import store_result

logger = logging.getLogger(__name__)


@dataclass
class WeaveResult:
    final_image: str  # data URI
    mime_type: str
    filename: str
    output_url: Optional[str] = None


def _validate_text(text: object, settings: config.Settings, required: bool) -> str:
    if not isinstance(text, str):
        raise ValueError("Text input is invalid.")
    if required and not text.strip():
        raise ValueError("Please enter some text to sketch on the image.")
    if len(text) > settings.max_text_length:
        raise ValueError(f"Text input must be at most {settings.max_text_length} characters.")
    return text


def _prepare(source: object, label: str, settings: config.Settings) -> PreparedImage:
    raw = load_image_source(source, label)
    try:
        return prepare_image(raw.data, settings.max_input_long_edge, settings.max_input_pixels)
    except ValueError as exc:
        raise ValueError(f"{label} image is missing or invalid.") from exc


def _run(mode: WeaveMode, images: Sequence[PreparedImage], text: str) -> WeaveResult:
    prompt = build_prompt(mode, text)
    generated = generate_image(images, prompt)
    final = finalize_output(generated, prompt=prompt)

    data_uri = to_data_uri(final.data, final.mime_type)
    output_url = store_result(final.data, final.mime_type)
    return WeaveResult(
        final_image=data_uri,
        mime_type=final.mime_type,
        filename=download_filename(data_uri),
        output_url=output_url,
    )


def weave_images(foreground: object, background: object, text: object) -> WeaveResult:
    """
    Cut the subject out of `foreground`, sketch `text` onto `background`, and
    blend the two into one composite.

    Raises:
        ValueError: when an input is missing or invalid.
        GenerationError: when the model does not return a usable image.
    """
    settings = config.get_settings()
    fg = _prepare(foreground, "Foreground", settings)
    bg = _prepare(background, "Background", settings)
    caption = _validate_text(text, settings, required=False)

    logger.info("Starting weave with input text: %r", caption)
    result = _run(WeaveMode.COMPOSITE, [fg, bg], caption)
    logger.info("Weave completed successfully (%s)", result.mime_type)
    return result


def sketch_text(background: object, text: object) -> WeaveResult:
    """Render `text` as a hand sketch onto `background` without a subject."""
    settings = config.get_settings()
    bg = _prepare(background, "Background", settings)
    caption = _validate_text(text, settings, required=True)

    logger.info("Starting sketch with input text: %r", caption)
    result = _run(WeaveMode.SKETCH, [bg], caption)
    logger.info("Sketch completed successfully (%s)", result.mime_type)
    return result
