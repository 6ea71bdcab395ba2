"""
Data URI helpers.

The browser hands images to the service inline as
``data:<mimetype>;base64,<encoded_data>`` and receives the composite back in
the same shape, so no separate upload step is needed.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

_PREFIX = "data:"
_BASE64_MARKER = ";base64"


@dataclass(frozen=True)
class DataUri:
    mime_type: str
    data: bytes

    @property
    def is_image(self) -> bool:
        return self.mime_type.startswith("image/")


def is_image_data_uri(value: object) -> bool:
    """Cheap shape check used before any decoding happens."""
    return isinstance(value, str) and value.startswith("data:image")


def parse_data_uri(value: object) -> DataUri:
    """
    Split a base64 data URI into its MIME type and decoded payload.

    Raises:
        ValueError: when the value is not a base64 data URI with a MIME type.
    """
    if not isinstance(value, str) or not value.startswith(_PREFIX):
        raise ValueError("Expected a data URI")

    header, sep, payload = value.partition(",")
    if not sep:
        raise ValueError("Data URI has no payload separator")

    meta = header[len(_PREFIX) :]
    if not meta.endswith(_BASE64_MARKER):
        raise ValueError("Data URI must use base64 encoding")
    # Parameters such as ";charset=..." may sit between the type and the marker.
    mime_type = meta[: -len(_BASE64_MARKER)].split(";", 1)[0].strip().lower()
    if "/" not in mime_type:
        raise ValueError("Data URI must include a MIME type")

    payload = payload.strip()
    if not payload:
        raise ValueError("Data URI payload is empty")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Data URI payload is not valid base64") from exc
    return DataUri(mime_type=mime_type, data=data)


def to_data_uri(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"{_PREFIX}{mime_type}{_BASE64_MARKER},{encoded}"


def mime_from_data_uri(value: str) -> str:
    """Return the MIME type of a data URI without decoding the payload."""
    if not value.startswith(_PREFIX):
        return ""
    end = value.find(";")
    if end == -1:
        end = value.find(",")
    if end == -1:
        return ""
    return value[len(_PREFIX) : end].lower()


def download_filename(value: str, stem: str = "woven-image") -> str:
    """Suggest a download name whose extension follows the MIME subtype."""
    mime_type = mime_from_data_uri(value)
    subtype = mime_type.split("/", 1)[1] if "/" in mime_type else ""
    extension = subtype.split("+", 1)[0] or "png"
    return f"{stem}.{extension}"
