"""
Configuration loader for the Image Weaver service.

Environment variables are centralized here to keep the rest of the code
focused on request handling and to make operational tuning clear.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OUTPUT_FORMATS = {"original", "png", "jpeg"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Generative model
    gemini_api_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY")
    )
    gemini_model: str = "gemini-2.5-flash-image"

    # Input limits
    max_image_bytes: int = 10 * 1024 * 1024
    max_input_long_edge: int = 1536
    max_input_pixels: int = 50_000_000
    max_text_length: int = 280

    # Remote http(s) image sources
    allow_url_sources: bool = False

    # Output
    output_format: str = "original"

    # Cloudflare R2 / S3-compatible storage
    r2_endpoint: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None
    r2_public_base_url: Optional[str] = None

    # API
    request_timeout_seconds: int = 120
    log_level: str = "INFO"

    # Debugging
    debug: bool = False
    debug_output_dir: Path = Path("/tmp/image_weaver_debug")

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError("OUTPUT_FORMAT must be one of original|png|jpeg")
        return v

    @property
    def storage_configured(self) -> bool:
        return all(
            v
            for v in (
                self.r2_endpoint,
                self.r2_access_key_id,
                self.r2_secret_access_key,
                self.r2_bucket_name,
            )
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
