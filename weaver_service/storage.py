"""
Optional upload of finished composites to Cloudflare R2 / S3.

Storage is only used when every R2 setting is present; the composite is
always returned inline as a data URI regardless.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional
from urllib.parse import urljoin

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from . import config

logger = logging.getLogger(__name__)

KEY_PREFIX = "weaver"


class StorageError(RuntimeError):
    """Uploading the composite failed."""


def _get_s3_client(settings: config.Settings):
    if not settings.storage_configured:
        raise RuntimeError("R2 configuration is incomplete; check env vars.")
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        endpoint_url=settings.r2_endpoint,
        config=BotoConfig(signature_version="s3v4"),
    )


def _build_public_url(client, settings: config.Settings, key: str) -> str:
    if settings.r2_public_base_url:
        return urljoin(settings.r2_public_base_url.rstrip("/") + "/", key)
    return client.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.r2_bucket_name, "Key": key},
        ExpiresIn=3600,
    )


def store_result(data: bytes, mime_type: str) -> Optional[str]:
    """Upload the composite and return its URL, or None when storage is off."""
    settings = config.get_settings()
    if not settings.storage_configured:
        return None

    extension = mime_type.split("/", 1)[-1] or "png"
    key = f"{KEY_PREFIX}/{uuid.uuid4()}.{extension}"
    try:
        client = _get_s3_client(settings)
        client.put_object(
            Bucket=settings.r2_bucket_name,
            Key=key,
            Body=data,
            ContentType=mime_type,
        )
        url = _build_public_url(client, settings, key)
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Upload to storage failed: {exc}") from exc
    logger.info("Stored composite at %s", key)
    return url
