"""Media analysis and transformation endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps.auth import get_api_key
from ..schemas import (
    AstatsRequest,
    AstatsResponse,
    CutRequest,
    CutResponse,
    ExtractAudioRequest,
    ExtractAudioResponse,
)
from ..services.media_service import MediaService
from ..settings import APISettings, get_settings

router = APIRouter(prefix="/v1", tags=["media"])


def get_service(settings: APISettings = Depends(get_settings)) -> MediaService:
    return MediaService(settings)


@router.post("/astats", response_model=AstatsResponse, response_model_exclude_none=True)
async def astats(
    payload: AstatsRequest,
    _: str = Depends(get_api_key),
    service: MediaService = Depends(get_service),
):
    """Detect loud/active ranges (laughter, speech peaks) in the input's audio."""
    return AstatsResponse(**await service.analyze(payload))


@router.post("/extract-audio", response_model=ExtractAudioResponse)
async def extract_audio(
    payload: ExtractAudioRequest,
    _: str = Depends(get_api_key),
    service: MediaService = Depends(get_service),
):
    return ExtractAudioResponse(**await service.extract_audio(payload))


@router.post("/cut", response_model=CutResponse)
async def cut_clip(
    payload: CutRequest,
    _: str = Depends(get_api_key),
    service: MediaService = Depends(get_service),
):
    return CutResponse(**await service.cut(payload))
