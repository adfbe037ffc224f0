"""Request-level workflows: analyse, extract audio, cut clips."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Any, Dict, Optional, TypeVar

from src.media_core.errors import AnalysisError, ToolError
from src.media_core.ffmpeg import ClipOptions, FfmpegTool
from src.media_core.orchestrator import AnalysisOrchestrator
from src.media_core.types import AnalysisConfig

from ..metrics import ANALYSIS_COUNTER, ANALYSIS_DURATION, ANALYSIS_FAILURES
from ..schemas import AstatsRequest, CutRequest, ExtractAudioRequest
from ..settings import APISettings
from .media_fetcher import MediaFetcher
from .storage import ArtifactStore, build_store

LOGGER = logging.getLogger("clipsense.api")

T = TypeVar("T")


def _pick(value: Optional[T], default: T) -> T:
    return default if value is None else value


class MediaService:
    """Glue between HTTP requests, the fetcher, ffmpeg and the artifact store."""

    def __init__(
        self,
        settings: APISettings,
        *,
        tool: Optional[FfmpegTool] = None,
        store: Optional[ArtifactStore] = None,
        fetcher: Optional[MediaFetcher] = None,
    ) -> None:
        self.settings = settings
        self.tool = tool or FfmpegTool(
            settings.ffmpeg_path,
            settings.ffprobe_path,
            timeout_margin=settings.tool_timeout_margin,
            transform_timeout=settings.tool_timeout,
        )
        self._store = store
        self.fetcher = fetcher or MediaFetcher(settings, store_provider=self.store)

    def store(self) -> ArtifactStore:
        if self._store is None:
            self._store = build_store(self.settings)
        return self._store

    def analysis_config(self, request: AstatsRequest) -> AnalysisConfig:
        settings = self.settings
        return AnalysisConfig.clamped(
            _pick(request.max_seconds, settings.astats_max_seconds),
            percentile=_pick(request.percentile, settings.astats_percentile),
            floor_level=_pick(request.base_db, settings.astats_base_db),
            pad=_pick(request.pad, settings.astats_pad),
            merge_gap=_pick(request.merge_gap, settings.astats_merge_gap),
            silence_min_duration=settings.silence_min_duration,
        )

    async def analyze(self, request: AstatsRequest) -> Dict[str, Any]:
        config = self.analysis_config(request)
        orchestrator = AnalysisOrchestrator(
            self.tool, excerpt_chars=self.settings.diagnostic_excerpt_chars
        )
        async with self.fetcher.open(url=request.video_url, object_key=request.object_key) as media_path:
            started = time.perf_counter()
            try:
                result = await orchestrator.analyze(media_path, config)
            except AnalysisError:
                ANALYSIS_FAILURES.inc()
                raise
            finally:
                ANALYSIS_DURATION.observe(time.perf_counter() - started)
        ANALYSIS_COUNTER.labels(method=result.method.value).inc()
        include_raw = _pick(request.include_raw, self.settings.include_raw_default)
        payload = result.to_payload(include_raw=include_raw)
        payload["ok"] = True
        return payload

    async def extract_audio(self, request: ExtractAudioRequest) -> Dict[str, Any]:
        key = f"audio/{uuid.uuid4()}_16k.wav"
        out_path = self.fetcher.temp_path(".wav")
        try:
            async with self.fetcher.open(url=request.video_url, object_key=request.object_key) as media_path:
                await self.tool.extract_audio(media_path, out_path)
            url = await self.store().publish(out_path, key, "audio/wav")
        finally:
            out_path.unlink(missing_ok=True)
        return {"ok": True, "audio_url": url}

    async def cut(self, request: CutRequest) -> Dict[str, Any]:
        clip_id = uuid.uuid4()
        duration = request.end_time - request.start_time
        clip_path = self.fetcher.temp_path(".mp4")
        thumb_path = self.fetcher.temp_path(".jpg")
        try:
            async with AsyncExitStack() as stack:
                media_path = await stack.enter_async_context(
                    self.fetcher.open(url=request.video_url, object_key=request.object_key)
                )
                captions_path: Path | None = None
                if request.filters.captions_url:
                    captions_path = await stack.enter_async_context(
                        self.fetcher.open(url=request.filters.captions_url, suffix=".srt")
                    )
                options = ClipOptions(
                    format=request.filters.format,
                    captions_path=captions_path,
                    loudnorm=request.filters.loudnorm,
                    video_codec=request.output.video_codec,
                    audio_codec=request.output.audio_codec,
                    crf=request.output.crf,
                    preset=request.output.preset,
                    faststart=request.output.faststart,
                )
                await self.tool.cut_clip(media_path, clip_path, request.start_time, request.end_time, options)

            store = self.store()
            clip_url = await store.publish(clip_path, f"clips/{clip_id}.mp4", "video/mp4")
            thumbnail_url = None
            try:
                await self.tool.thumbnail(clip_path, thumb_path, min(1.0, duration / 2))
            except ToolError as exc:
                LOGGER.warning("Thumbnail extraction failed for clip %s: %s", clip_id, exc)
            else:
                thumbnail_url = await store.publish(thumb_path, f"thumbs/{clip_id}.jpg", "image/jpeg")
        finally:
            clip_path.unlink(missing_ok=True)
            thumb_path.unlink(missing_ok=True)
        return {"ok": True, "clip_url": clip_url, "thumbnail_url": thumbnail_url, "duration": duration}
