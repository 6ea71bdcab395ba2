"""
FastAPI layer exposing the image weaver.

Endpoints:
 - GET /
 - GET /health
 - POST /weave
 - POST /weave/files
 - POST /sketch
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from . import config
from .data_uri import to_data_uri
from .genai_client import GenerationError
from .postprocessing import INVALID_OUTPUT_MESSAGE
from .pipeline import WeaveResult, sketch_text, weave_images
from .storage import StorageError

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Image Weaver", version="0.1.0")

INDEX_HTML = Path(__file__).resolve().parent / "static" / "index.html"
ERROR_MESSAGE_LIMIT = 150


class WeaveRequest(BaseModel):
    foregroundImage: Optional[str] = None
    backgroundImage: Optional[str] = None
    text: Optional[str] = None


class SketchRequest(BaseModel):
    backgroundImage: Optional[str] = None
    text: Optional[str] = None


class WeaveResponse(BaseModel):
    finalImage: str
    mimeType: str
    filename: str
    outputUrl: Optional[str] = None


def _failure_detail(exc: Exception) -> str:
    message = str(exc)
    suffix = "..." if len(message) > ERROR_MESSAGE_LIMIT else ""
    return f"Failed to weave images: {message[:ERROR_MESSAGE_LIMIT]}{suffix}"


def _run(action: Callable[[], WeaveResult]) -> WeaveResponse:
    try:
        result = action()
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve)) from ve
    except GenerationError as exc:
        logger.error("Image generation failed: %s", exc)
        detail = INVALID_OUTPUT_MESSAGE if str(exc) == INVALID_OUTPUT_MESSAGE else _failure_detail(exc)
        raise HTTPException(status_code=502, detail=detail) from exc
    except StorageError as exc:
        logger.exception("Failed to upload composite to R2: %s", exc)
        raise HTTPException(status_code=500, detail="Upload to storage failed") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error while weaving images: %s", exc)
        raise HTTPException(status_code=500, detail=_failure_detail(exc)) from exc

    return WeaveResponse(
        finalImage=result.final_image,
        mimeType=result.mime_type,
        filename=result.filename,
        outputUrl=result.output_url,
    )


async def _upload_to_data_uri(upload: UploadFile) -> str:
    if not upload.content_type or not upload.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Expected an image file")
    raw = await upload.read()
    return to_data_uri(raw, upload.content_type)


@app.get("/", response_class=HTMLResponse)
def index():
    return HTMLResponse(INDEX_HTML.read_text(encoding="utf-8"))


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/weave", response_model=WeaveResponse)
def weave(body: WeaveRequest):
    return _run(lambda: weave_images(body.foregroundImage, body.backgroundImage, body.text))


@app.post("/weave/files", response_model=WeaveResponse)
async def weave_files(
    foreground: UploadFile = File(...),
    background: UploadFile = File(...),
    text: str = Form(""),
):
    fg = await _upload_to_data_uri(foreground)
    bg = await _upload_to_data_uri(background)
    return await run_in_threadpool(_run, lambda: weave_images(fg, bg, text))


@app.post("/sketch", response_model=WeaveResponse)
def sketch(body: SketchRequest):
    return _run(lambda: sketch_text(body.backgroundImage, body.text))
