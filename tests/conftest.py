"""Pytest configuration helpers."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_on_path() -> None:
    """Allow tests to import from repo modules without setting PYTHONPATH."""
    repo_root = Path(__file__).resolve().parents[1]
    path_str = str(repo_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)


_ensure_repo_on_path()

from src.media_core.ffmpeg import AudioProbe, ToolOutput  # noqa: E402


def ametadata_log(samples) -> str:
    """Render (t, level) pairs the way ``ametadata=print`` logs them."""
    lines = []
    for idx, (t, level) in enumerate(samples):
        lines.append(f"[Parsed_ametadata_3 @ 0x55d0c] frame:{idx}    pts:{int(t * 16000)}    pts_time:{t}")
        lines.append(f"[Parsed_ametadata_3 @ 0x55d0c] lavfi.astats.Overall.RMS_level={level}")
    return "\n".join(lines) + "\n"


def silencedetect_log(events) -> str:
    lines = []
    for kind, t in events:
        if kind == "start":
            lines.append(f"[silencedetect @ 0x7f3a] silence_start: {t}")
        else:
            lines.append(f"[silencedetect @ 0x7f3a] silence_end: {t} | silence_duration: 1")
    return "\n".join(lines) + "\n"


class FakeTool:
    """Scripted stand-in for ``FfmpegTool``; records every call."""

    def __init__(
        self,
        *,
        probe: AudioProbe | Exception | None = None,
        loudness: ToolOutput | Exception | None = None,
        silence: ToolOutput | Exception | None = None,
        thumbnail_error: Exception | None = None,
    ) -> None:
        self.probe = probe if probe is not None else AudioProbe(has_audio=True, duration=None)
        self.loudness = loudness if loudness is not None else ToolOutput(0, "")
        self.silence = silence if silence is not None else ToolOutput(0, "")
        self.thumbnail_error = thumbnail_error
        self.calls: list[tuple] = []

    @staticmethod
    def _answer(value):
        if isinstance(value, Exception):
            raise value
        return value

    async def probe_audio(self, path):
        self.calls.append(("probe", path))
        return self._answer(self.probe)

    async def measure_loudness(self, path, max_seconds):
        self.calls.append(("loudness", path, max_seconds))
        return self._answer(self.loudness)

    async def detect_silence(self, path, max_seconds, noise_db, min_duration):
        self.calls.append(("silence", path, max_seconds, noise_db, min_duration))
        return self._answer(self.silence)

    async def extract_audio(self, src, dest):
        self.calls.append(("extract", src, dest))
        Path(dest).write_bytes(b"RIFF....WAVE")

    async def cut_clip(self, src, dest, start, end, options):
        self.calls.append(("cut", src, dest, start, end, options))
        Path(dest).write_bytes(b"clip")

    async def thumbnail(self, src, dest, at):
        self.calls.append(("thumbnail", src, dest, at))
        if self.thumbnail_error is not None:
            raise self.thumbnail_error
        Path(dest).write_bytes(b"jpeg")


@pytest.fixture()
def fake_tool():
    return FakeTool


@pytest.fixture()
def loudness_log():
    return ametadata_log


@pytest.fixture()
def silence_log():
    return silencedetect_log
