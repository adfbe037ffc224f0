"""Health and welcome endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from src.media_core.ffmpeg import FfmpegTool

from ..deps.auth import get_api_key
from ..schemas import HealthResponse
from ..services.storage import describe_store
from ..settings import APISettings, get_settings

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz(
    _: str = Depends(get_api_key),
    settings: APISettings = Depends(get_settings),
):
    tool = FfmpegTool(settings.ffmpeg_path, settings.ffprobe_path)
    ffmpeg = "ok" if tool.available() else "missing"
    storage = describe_store(settings)
    return HealthResponse(
        ok=ffmpeg == "ok" and storage != "unconfigured",
        ffmpeg=ffmpeg,
        storage=storage,
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/welcome")
async def welcome(settings: APISettings = Depends(get_settings)):
    return {
        "name": settings.app_name,
        "version": settings.version,
        "docs": "/docs",
        "endpoints": ["/v1/astats", "/v1/extract-audio", "/v1/cut"],
    }
