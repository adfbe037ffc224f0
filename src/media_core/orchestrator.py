"""Drives probe -> loudness measurement -> (silence fallback) -> ranges -> merge."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional, Protocol

from .errors import AnalysisError, ToolError, tail_excerpt
from .ffmpeg import AudioProbe, ToolOutput
from .measurement_parser import parse_silence_events, scan_samples
from .merger import merge_ranges
from .ranges import build_active_ranges, invert_silence
from .threshold import select_threshold
from .types import AnalysisConfig, AnalysisMethod, AnalysisResult, Interval

LOGGER = logging.getLogger("clipsense.analysis")

NO_RMS_NOTE = "no RMS lines detected"


class MeasurementTool(Protocol):
    async def probe_audio(self, path: Path) -> AudioProbe: ...

    async def measure_loudness(self, path: Path, max_seconds: float) -> ToolOutput: ...

    async def detect_silence(
        self, path: Path, max_seconds: float, noise_db: float, min_duration: float
    ) -> ToolOutput: ...


class AnalysisStage(str, Enum):
    PROBE_AUDIO = "probe_audio"
    PRIMARY_MEASUREMENT = "primary_measurement"
    FALLBACK_SILENCE = "fallback_silence"
    BUILD_RANGES = "build_ranges"
    MERGE_RANGES = "merge_ranges"
    DONE = "done"


class AnalysisOrchestrator:
    """One full activity analysis per call; holds no per-request state."""

    def __init__(self, tool: MeasurementTool, *, excerpt_chars: int = 2000) -> None:
        self.tool = tool
        self.excerpt_chars = excerpt_chars

    def _enter(self, stage: AnalysisStage, media_path: Path) -> None:
        LOGGER.debug("astats %s: %s", stage.value, media_path.name)

    async def analyze(self, media_path: Path, config: AnalysisConfig) -> AnalysisResult:
        """Run one analysis of ``media_path``.

        The silence fallback closes its trailing interval at
        ``min(config.max_seconds, probed duration)``, or at ``max_seconds``
        when the probe reports no duration.
        """
        media_path = Path(media_path)
        notes: List[str] = []

        self._enter(AnalysisStage.PROBE_AUDIO, media_path)
        probe = await self._probe(media_path, notes)
        if probe is not None and not probe.has_audio:
            LOGGER.info("No audio stream in %s", media_path.name)
            self._enter(AnalysisStage.DONE, media_path)
            return AnalysisResult(
                threshold_used=config.floor_level,
                ranges=[],
                sample_count=0,
                method=AnalysisMethod.NO_AUDIO,
                notes=["no audio stream"],
            )
        horizon = config.max_seconds
        if probe is not None and probe.duration is not None and probe.duration > 0:
            horizon = min(horizon, probe.duration)

        self._enter(AnalysisStage.PRIMARY_MEASUREMENT, media_path)
        primary_output = ""
        failure: Optional[str] = None
        try:
            measured = await self.tool.measure_loudness(media_path, config.max_seconds)
        except ToolError as exc:
            failure = f"primary measurement failed: {exc}"
            primary_output = exc.output
        else:
            primary_output = measured.output
            if not measured.ok:
                failure = f"primary measurement failed: exit code {measured.returncode}"

        if failure is None:
            scan = scan_samples(primary_output, config.max_seconds)
            if scan.samples:
                if scan.synthetic_timestamps:
                    notes.append("timestamps synthesized at 0.5s steps")
                self._enter(AnalysisStage.BUILD_RANGES, media_path)
                threshold = select_threshold(scan.samples, config.percentile, config.floor_level)
                raw = build_active_ranges(scan.samples, threshold)
                return self._finish(
                    media_path,
                    raw,
                    config,
                    threshold=threshold,
                    sample_count=len(scan.samples),
                    method=AnalysisMethod.PRIMARY_MEASUREMENT,
                    notes=notes,
                    raw_output=primary_output,
                )
            failure = NO_RMS_NOTE
        LOGGER.warning("Falling back to silencedetect for %s (%s)", media_path.name, failure)
        notes.append(failure)

        self._enter(AnalysisStage.FALLBACK_SILENCE, media_path)
        try:
            fallback = await self.tool.detect_silence(
                media_path, config.max_seconds, config.floor_level, config.silence_min_duration
            )
        except ToolError as exc:
            raise self._hard_failure(
                f"silence detection failed: {exc}", primary_output, exc.output
            ) from exc
        if not fallback.ok:
            raise self._hard_failure(
                f"silence detection failed: exit code {fallback.returncode}",
                primary_output,
                fallback.output,
            )

        self._enter(AnalysisStage.BUILD_RANGES, media_path)
        events = parse_silence_events(fallback.output, horizon)
        raw = invert_silence(events, horizon)
        return self._finish(
            media_path,
            raw,
            config,
            threshold=config.floor_level,
            sample_count=len(events),
            method=AnalysisMethod.FALLBACK_SILENCE,
            notes=notes,
            raw_output=fallback.output,
        )

    async def _probe(self, media_path: Path, notes: List[str]) -> Optional[AudioProbe]:
        try:
            return await self.tool.probe_audio(media_path)
        except ToolError as exc:
            LOGGER.warning("Audio probe failed for %s: %s", media_path.name, exc)
            notes.append("audio probe failed")
            return None

    def _finish(
        self,
        media_path: Path,
        raw: List[Interval],
        config: AnalysisConfig,
        *,
        threshold: float,
        sample_count: int,
        method: AnalysisMethod,
        notes: List[str],
        raw_output: str,
    ) -> AnalysisResult:
        self._enter(AnalysisStage.MERGE_RANGES, media_path)
        merged = merge_ranges(raw, config.pad, config.merge_gap)
        self._enter(AnalysisStage.DONE, media_path)
        LOGGER.info(
            "astats %s: method=%s threshold=%.2f samples=%d raw=%d merged=%d",
            media_path.name,
            method.value,
            threshold,
            sample_count,
            len(raw),
            len(merged),
        )
        return AnalysisResult(
            threshold_used=threshold,
            ranges=merged,
            sample_count=sample_count,
            method=method,
            raw_excerpt=tail_excerpt(raw_output, self.excerpt_chars),
            raw_ranges_count=len(raw),
            notes=notes,
        )

    def _hard_failure(self, message: str, primary_output: str, fallback_output: str) -> AnalysisError:
        LOGGER.error("astats analysis failed: %s", message)
        half = max(self.excerpt_chars // 2, 1)
        excerpt = "\n".join(
            part
            for part in (tail_excerpt(primary_output, half), tail_excerpt(fallback_output, half))
            if part
        )
        return AnalysisError(message, excerpt=excerpt)


__all__ = ["AnalysisOrchestrator", "AnalysisStage", "MeasurementTool", "NO_RMS_NOTE"]
