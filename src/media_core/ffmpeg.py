"""ffmpeg / ffprobe invocations on asyncio subprocesses."""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import ToolError, ToolNotFoundError, ToolTimeoutError, tail_excerpt

LOGGER = logging.getLogger("clipsense.ffmpeg")

ANALYSIS_SAMPLE_RATE = 16000
# 8000 samples at 16 kHz -> one astats window every 0.5 s
ANALYSIS_WINDOW_SAMPLES = 8000
RMS_KEY = "lavfi.astats.Overall.RMS_level"

LOUDNORM_FILTER = "loudnorm=I=-16:TP=-1.5:LRA=11"
VERTICAL_GRAPH = (
    "[0:v]scale=-2:1920,boxblur=luma_radius=20:luma_power=1[bg];"
    "[0:v]scale=-2:1080[fg];"
    "[bg][fg]overlay=(W-w)/2:(H-h)/2"
)
SQUARE_CHAIN = "scale=1080:-2,pad=1080:1080:(ow-iw)/2:(oh-ih)/2:black"
CLIP_FORMATS = ("original", "vertical_9_16", "square_1_1")


@dataclass(slots=True)
class ToolOutput:
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass(slots=True)
class AudioProbe:
    has_audio: bool
    duration: Optional[float] = None


@dataclass(slots=True)
class ClipOptions:
    format: str = "original"
    captions_path: Optional[Path] = None
    loudnorm: bool = True
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    crf: int = 23
    preset: str = "veryfast"
    faststart: bool = True


async def _reap(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def run_tool(cmd: Sequence[str], timeout: float) -> ToolOutput:
    """Run ``cmd`` with stdout and stderr merged, killing it past ``timeout``.

    The child is reaped on every exit path, including cancellation of the
    awaiting task. A non-zero exit is returned, not raised; a missing binary,
    a timeout or death by signal raise ``ToolError`` subclasses.
    """
    name = Path(cmd[0]).name
    LOGGER.debug("CMD: %s", shlex.join(cmd))
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as exc:
        raise ToolNotFoundError(f"missing dependency: {cmd[0]}") from exc
    except PermissionError as exc:
        raise ToolError(f"cannot execute {cmd[0]}: {exc}") from exc

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _reap(process)
        LOGGER.error("%s exceeded %.1fs and was killed", name, timeout)
        raise ToolTimeoutError(f"{name} timed out after {timeout:.1f}s", returncode=process.returncode)
    except BaseException:
        await _reap(process)
        raise

    text = (stdout or b"").decode("utf-8", errors="replace")
    returncode = process.returncode if process.returncode is not None else -1
    if returncode < 0:
        raise ToolError(
            f"{name} killed by signal {-returncode}",
            output=tail_excerpt(text),
            returncode=returncode,
        )
    return ToolOutput(returncode=returncode, output=text)


def _escape_filter_path(path: Path) -> str:
    value = str(path).replace("\\", "/")
    return value.replace(":", r"\:").replace("'", r"\'")


class FfmpegTool:
    """Builds and runs the ffmpeg command lines the service needs."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        *,
        timeout_margin: float = 120.0,
        transform_timeout: float = 900.0,
        probe_timeout: float = 60.0,
    ) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.ffprobe_path = ffprobe_path
        self.timeout_margin = timeout_margin
        self.transform_timeout = transform_timeout
        self.probe_timeout = probe_timeout

    def available(self) -> bool:
        return shutil.which(self.ffmpeg_path) is not None and shutil.which(self.ffprobe_path) is not None

    def analysis_timeout(self, max_seconds: float) -> float:
        return float(max_seconds) + self.timeout_margin

    # --- command builders -------------------------------------------------

    def probe_command(self, path: Path) -> List[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "stream=codec_type:format=duration",
            "-of", "json",
            str(path),
        ]

    def loudness_command(self, path: Path, max_seconds: float) -> List[str]:
        chain = ",".join(
            [
                f"aresample={ANALYSIS_SAMPLE_RATE}",
                f"asetnsamples=n={ANALYSIS_WINDOW_SAMPLES}",
                "astats=metadata=1:reset=1",
                f"ametadata=print:key={RMS_KEY}",
            ]
        )
        return [
            self.ffmpeg_path,
            "-hide_banner", "-nostats",
            "-t", f"{max_seconds:g}",
            "-i", str(path),
            "-vn",
            "-af", chain,
            "-f", "null", "-",
        ]

    def silence_command(
        self, path: Path, max_seconds: float, noise_db: float, min_duration: float
    ) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner", "-nostats",
            "-t", f"{max_seconds:g}",
            "-i", str(path),
            "-vn",
            "-af", f"silencedetect=noise={noise_db:g}dB:d={min_duration:g}",
            "-f", "null", "-",
        ]

    def extract_audio_command(self, src: Path, dest: Path) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner", "-y",
            "-i", str(src),
            "-vn", "-ac", "1", "-ar", str(ANALYSIS_SAMPLE_RATE),
            str(dest),
        ]

    def cut_command(
        self, src: Path, dest: Path, start: float, end: float, options: ClipOptions
    ) -> List[str]:
        if options.format not in CLIP_FORMATS:
            raise ValueError(f"unknown clip format: {options.format}")
        cmd = [
            self.ffmpeg_path,
            "-hide_banner", "-y",
            "-ss", f"{start:g}",
            "-i", str(src),
            "-t", f"{end - start:g}",
        ]
        subtitles = None
        if options.captions_path is not None:
            subtitles = f"subtitles='{_escape_filter_path(options.captions_path)}'"
        if options.format == "vertical_9_16":
            graph = VERTICAL_GRAPH + (f",{subtitles}" if subtitles else "") + "[v]"
            cmd += ["-filter_complex", graph, "-map", "[v]", "-map", "0:a?"]
        else:
            chain = []
            if options.format == "square_1_1":
                chain.append(SQUARE_CHAIN)
            if subtitles:
                chain.append(subtitles)
            if chain:
                cmd += ["-vf", ",".join(chain)]
        if options.loudnorm:
            cmd += ["-af", LOUDNORM_FILTER]
        cmd += [
            "-c:v", options.video_codec,
            "-preset", options.preset,
            "-crf", str(options.crf),
            "-c:a", options.audio_codec,
        ]
        if options.faststart:
            cmd += ["-movflags", "+faststart"]
        cmd.append(str(dest))
        return cmd

    def thumbnail_command(self, src: Path, dest: Path, at: float) -> List[str]:
        return [
            self.ffmpeg_path,
            "-hide_banner", "-y",
            "-ss", f"{max(at, 0.0):g}",
            "-i", str(src),
            "-frames:v", "1",
            "-q:v", "3",
            str(dest),
        ]

    # --- invocations ------------------------------------------------------

    async def probe_audio(self, path: Path) -> AudioProbe:
        result = await run_tool(self.probe_command(path), self.probe_timeout)
        if not result.ok:
            raise ToolError(
                f"ffprobe exited with {result.returncode}",
                output=tail_excerpt(result.output),
                returncode=result.returncode,
            )
        try:
            data = json.loads(result.output or "{}")
        except json.JSONDecodeError as exc:
            raise ToolError("ffprobe returned invalid JSON", output=tail_excerpt(result.output)) from exc
        streams = data.get("streams") or []
        has_audio = any(stream.get("codec_type") == "audio" for stream in streams)
        duration = None
        raw_duration = (data.get("format") or {}).get("duration")
        if raw_duration not in (None, "N/A"):
            try:
                duration = float(raw_duration)
            except (TypeError, ValueError):
                duration = None
        return AudioProbe(has_audio=has_audio, duration=duration)

    async def measure_loudness(self, path: Path, max_seconds: float) -> ToolOutput:
        return await run_tool(self.loudness_command(path, max_seconds), self.analysis_timeout(max_seconds))

    async def detect_silence(
        self, path: Path, max_seconds: float, noise_db: float, min_duration: float
    ) -> ToolOutput:
        return await run_tool(
            self.silence_command(path, max_seconds, noise_db, min_duration),
            self.analysis_timeout(max_seconds),
        )

    async def _transform(self, cmd: List[str], what: str) -> None:
        result = await run_tool(cmd, self.transform_timeout)
        if not result.ok:
            raise ToolError(
                f"ffmpeg {what} failed with exit code {result.returncode}",
                output=tail_excerpt(result.output),
                returncode=result.returncode,
            )

    async def extract_audio(self, src: Path, dest: Path) -> None:
        await self._transform(self.extract_audio_command(src, dest), "audio extraction")

    async def cut_clip(self, src: Path, dest: Path, start: float, end: float, options: ClipOptions) -> None:
        await self._transform(self.cut_command(src, dest, start, end, options), "cut")

    async def thumbnail(self, src: Path, dest: Path, at: float) -> None:
        await self._transform(self.thumbnail_command(src, dest, at), "thumbnail")


__all__ = [
    "AudioProbe",
    "ClipOptions",
    "FfmpegTool",
    "ToolOutput",
    "run_tool",
]
