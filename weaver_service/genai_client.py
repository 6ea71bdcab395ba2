"""
Client for the external multimodal generative model.

The loader:
 - builds a `google.genai.Client` from `GEMINI_API_KEY`,
 - keeps a single shared instance for the process,
 - exposes `get_genai_client()` and `generate_image()` for pipeline callers.

The model is treated as an opaque capability: images plus an instruction go
in, one image comes back.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
import logging
from threading import Lock
from typing import Optional, Sequence

from google import genai
from google.genai import types

from . import config
from .preprocessing import PreparedImage

logger = logging.getLogger(__name__)

_CLIENT: Optional[genai.Client] = None
_LOCK = Lock()

RESPONSE_MODALITIES = ["TEXT", "IMAGE"]


class GenerationError(RuntimeError):
    """The model answered without a usable image."""


@dataclass
class GeneratedImage:
    data: bytes
    mime_type: str
    text: str = ""


def _build_client(settings: config.Settings) -> genai.Client:
    if not settings.gemini_api_key:
        raise RuntimeError("GEMINI_API_KEY is not set; cannot reach the image model.")
    return genai.Client(
        api_key=settings.gemini_api_key,
        http_options=types.HttpOptions(timeout=settings.request_timeout_seconds * 1000),
    )


def get_genai_client() -> genai.Client:
    """Return the process-wide model client, creating it on first use."""
    global _CLIENT
    if _CLIENT is not None:
        return _CLIENT

    with _LOCK:
        if _CLIENT is None:
            settings = config.get_settings()
            _CLIENT = _build_client(settings)
            logger.info("Generative model client ready (model=%s)", settings.gemini_model)
    return _CLIENT


def reset_client() -> None:
    """Drop the cached client so the next call picks up new settings."""
    global _CLIENT
    with _LOCK:
        _CLIENT = None


def _extract_image(response) -> GeneratedImage:
    texts = []
    image = None
    for candidate in response.candidates or []:
        content = getattr(candidate, "content", None)
        if content is None:
            continue
        for part in content.parts or []:
            inline = getattr(part, "inline_data", None)
            if inline is not None and inline.data:
                if image is None:
                    data = inline.data
                    if isinstance(data, str):
                        data = base64.b64decode(data)
                    image = (data, inline.mime_type or "image/png")
            elif getattr(part, "text", None):
                texts.append(part.text)

    if image is None:
        if texts:
            logger.warning("Model returned text without an image: %s", " ".join(texts)[:200])
        raise GenerationError(
            "AI failed to produce an image. The media URL was not available in the response."
        )
    return GeneratedImage(data=image[0], mime_type=image[1], text="\n".join(texts))


def generate_image(
    images: Sequence[PreparedImage],
    prompt: str,
    client: Optional[genai.Client] = None,
    model: Optional[str] = None,
) -> GeneratedImage:
    """
    Send the images (in order) followed by the instruction text and return the
    first image the model produces.

    Raises:
        GenerationError: when the response carries no image part.
    """
    client = client or get_genai_client()
    model = model or config.get_settings().gemini_model

    parts = [types.Part.from_bytes(data=img.data, mime_type=img.mime_type) for img in images]
    parts.append(types.Part.from_text(text=prompt))

    logger.debug("Calling %s with %d image(s), prompt length=%d", model, len(images), len(prompt))
    response = client.models.generate_content(
        model=model,
        contents=parts,
        config=types.GenerateContentConfig(response_modalities=RESPONSE_MODALITIES),
    )
    generated = _extract_image(response)
    if generated.text:
        logger.info("Model commentary: %s", generated.text[:200])
    return generated
