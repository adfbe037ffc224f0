"""API settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class APISettings(BaseModel):
    app_name: str = Field(default=os.getenv("APP_NAME", "ClipSense Media API"))
    version: str = Field(default="1.0.0")
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    data_dir: str = Field(default=os.getenv("DATA_DIR", "data"))
    api_keys: List[str] = Field(default_factory=lambda: _split_keys())

    ffmpeg_path: str = Field(default=os.getenv("FFMPEG_PATH", "ffmpeg"))
    ffprobe_path: str = Field(default=os.getenv("FFPROBE_PATH", "ffprobe"))
    tool_timeout: float = Field(default=float(os.getenv("TOOL_TIMEOUT", "900")))
    tool_timeout_margin: float = Field(default=float(os.getenv("TOOL_TIMEOUT_MARGIN", "120")))

    download_timeout: float = Field(default=float(os.getenv("DOWNLOAD_TIMEOUT", "120")))
    max_download_bytes: int = Field(
        default=int(os.getenv("MAX_DOWNLOAD_BYTES", str(2 * 1024 * 1024 * 1024)))
    )

    storage_backend: str = Field(default=os.getenv("STORAGE_BACKEND", "s3"))
    storage_bucket: str | None = Field(default=os.getenv("STORAGE_BUCKET", "video-results"))
    s3_endpoint_url: str | None = Field(default=os.getenv("S3_ENDPOINT_URL"))
    s3_region: str | None = Field(default=os.getenv("S3_REGION", "us-east-1"))
    s3_access_key_id: str | None = Field(default=os.getenv("S3_ACCESS_KEY_ID"))
    s3_secret_access_key: str | None = Field(default=os.getenv("S3_SECRET_ACCESS_KEY"))
    public_base_url: str | None = Field(default=os.getenv("PUBLIC_BASE_URL"))
    signed_url_expires: int = Field(default=int(os.getenv("SIGNED_URL_EXPIRES", "604800")))
    local_storage_dir: str = Field(default=os.getenv("LOCAL_STORAGE_DIR", "data/artifacts"))

    astats_max_seconds: float = Field(default=float(os.getenv("ASTATS_MAX_SECONDS", "1200")))
    astats_percentile: float = Field(default=float(os.getenv("ASTATS_PERCENTILE", "0.6")))
    astats_base_db: float = Field(default=float(os.getenv("ASTATS_BASE_DB", "-35")))
    astats_pad: float = Field(default=float(os.getenv("ASTATS_PAD", "1.2")))
    astats_merge_gap: float = Field(default=float(os.getenv("ASTATS_MERGE_GAP", "1.0")))
    silence_min_duration: float = Field(default=float(os.getenv("SILENCE_MIN_DURATION", "0.5")))
    diagnostic_excerpt_chars: int = Field(default=int(os.getenv("DIAGNOSTIC_EXCERPT_CHARS", "2000")))
    include_raw_default: bool = Field(default=_flag("ASTATS_INCLUDE_RAW"))


def _split_keys() -> List[str]:
    raw = os.getenv("API_KEYS") or os.getenv("API_KEY") or ""
    return [key.strip() for key in raw.split(",") if key.strip()]


@lru_cache()
def get_settings() -> APISettings:
    return APISettings()
