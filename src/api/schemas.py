"""Pydantic schemas for API contracts."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

_TOKEN = r"^[A-Za-z0-9_+\-]+$"


class MediaSource(BaseModel):
    """Either a downloadable URL or a key inside the configured bucket."""

    video_url: str | None = None
    object_key: str | None = None

    @model_validator(mode="after")
    def _exactly_one_source(self):
        if bool(self.video_url) == bool(self.object_key):
            raise ValueError("exactly one of video_url or object_key is required")
        return self


class AstatsRequest(MediaSource):
    max_seconds: float | None = Field(default=None, gt=0)
    percentile: float | None = Field(default=None, ge=0, le=1)
    base_db: float | None = Field(default=None, le=0)
    pad: float | None = Field(default=None, ge=0)
    merge_gap: float | None = Field(default=None, ge=0)
    include_raw: bool | None = None


class RangeModel(BaseModel):
    start: float
    end: float


class AstatsResponse(BaseModel):
    ok: bool = True
    threshold: float
    ranges: List[RangeModel]
    points: int
    sampleCount: int
    method: Literal["primary_measurement", "fallback_silence", "no_audio"]
    note: str | None = None
    diagnostics: Dict[str, Any] | None = None


class ExtractAudioRequest(MediaSource):
    pass


class ExtractAudioResponse(BaseModel):
    ok: bool = True
    audio_url: str


class CutFilters(BaseModel):
    format: Literal["original", "vertical_9_16", "square_1_1"] = "original"
    captions_url: str | None = None
    loudnorm: bool = True


class CutOutput(BaseModel):
    container: Literal["mp4"] = "mp4"
    video_codec: str = Field(default="libx264", pattern=_TOKEN)
    audio_codec: str = Field(default="aac", pattern=_TOKEN)
    crf: int = Field(default=23, ge=0, le=51)
    preset: str = Field(default="veryfast", pattern=_TOKEN)
    faststart: bool = True


class CutRequest(MediaSource):
    start_time: float = Field(ge=0)
    end_time: float
    filters: CutFilters = Field(default_factory=CutFilters)
    output: CutOutput = Field(default_factory=CutOutput)

    @model_validator(mode="after")
    def _ordered_times(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be > start_time")
        return self


class CutResponse(BaseModel):
    ok: bool = True
    clip_url: str
    thumbnail_url: str | None = None
    duration: float


class HealthResponse(BaseModel):
    ok: bool
    ffmpeg: str
    storage: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    detail: Optional[str] = None
