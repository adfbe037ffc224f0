"""Tolerant scanners for ffmpeg astats / silencedetect diagnostic output.

ffmpeg prints the measurements we need as free-form log text and the exact
layout changes between filter chains and releases, so every accepted layout
is listed here explicitly. Text that matches none of them yields an empty
sequence; callers decide what "nothing recognised" means.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Sequence

from .types import MIN_LEVEL_DB, Sample, SilenceEvent, SilenceKind

SYNTHETIC_STEP_SECONDS = 0.5

_NUMBER = r"([-+]?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)"
_LEVEL = r"([-+]?(?:inf|nan|\d+(?:\.\d+)?(?:[eE][-+]?\d+)?))"

# ametadata=print -> "frame:12   pts:6144    pts_time:0.384"
# ffprobe / key=value writers -> "pts_time=0.384"
TIMESTAMP_LAYOUTS: Sequence[str] = (
    r"pts_time:\s*" + _NUMBER,
    r"pts_time=\s*" + _NUMBER,
)

# ametadata=print -> "lavfi.astats.Overall.RMS_level=-23.51"
# legacy single-line layout -> "key:lavfi.astats.Overall.RMS_level value:-23.51"
# astats summary -> "RMS level dB: -23.51"
LEVEL_LAYOUTS: Sequence[str] = (
    r"key:lavfi\.astats\.Overall\.RMS_level\s+value:\s*" + _LEVEL,
    r"lavfi\.astats\.Overall\.RMS_level\s*=\s*" + _LEVEL,
    r"RMS level dB:\s*" + _LEVEL,
)

SILENCE_START_LAYOUTS: Sequence[str] = (
    r"silence_start:\s*" + _LEVEL,
    r"silence_start=\s*" + _LEVEL,
)

SILENCE_END_LAYOUTS: Sequence[str] = (
    r"silence_end:\s*" + _LEVEL,
    r"silence_end=\s*" + _LEVEL,
)


def _compile(layouts: Iterable[str]) -> Pattern[str]:
    return re.compile("|".join(f"(?:{layout})" for layout in layouts), re.IGNORECASE)


TIMESTAMP_PATTERN = _compile(TIMESTAMP_LAYOUTS)
LEVEL_PATTERN = _compile(LEVEL_LAYOUTS)
SILENCE_START_PATTERN = _compile(SILENCE_START_LAYOUTS)
SILENCE_END_PATTERN = _compile(SILENCE_END_LAYOUTS)


@dataclass(slots=True)
class SampleScan:
    """Outcome of scanning a loudness log."""

    samples: List[Sample] = field(default_factory=list)
    timestamp_tokens: int = 0
    level_tokens: int = 0
    synthetic_timestamps: bool = False

    @property
    def recognised(self) -> bool:
        return bool(self.timestamp_tokens or self.level_tokens)


def _first_group(match: re.Match) -> Optional[str]:
    for value in match.groups():
        if value is not None:
            return value
    return None


def _to_level(token: str) -> Optional[float]:
    value = float(token)
    if math.isnan(value):
        return None
    if math.isinf(value):
        return MIN_LEVEL_DB if value < 0 else 0.0
    return max(value, MIN_LEVEL_DB)


def _timestamps(text: str) -> List[float]:
    values: List[float] = []
    for match in TIMESTAMP_PATTERN.finditer(text):
        token = _first_group(match)
        if token is not None:
            # encoder priming can put the first frame slightly before zero
            values.append(max(float(token), 0.0))
    return values


def _level_tokens(text: str) -> List[str]:
    tokens: List[str] = []
    for match in LEVEL_PATTERN.finditer(text):
        token = _first_group(match)
        if token is not None:
            tokens.append(token)
    return tokens


def scan_samples(text: str, max_seconds: float) -> SampleScan:
    """Pair the i-th timestamp with the i-th level found in ``text``.

    Without any timestamp tokens the levels are laid out on a fixed
    ``SYNTHETIC_STEP_SECONDS`` grid starting at zero. Samples later than
    ``max_seconds`` are dropped, as are ``nan`` levels.
    """
    timestamps = _timestamps(text or "")
    levels = _level_tokens(text or "")
    scan = SampleScan(timestamp_tokens=len(timestamps), level_tokens=len(levels))
    if not levels:
        return scan
    if not timestamps:
        scan.synthetic_timestamps = True
        timestamps = [idx * SYNTHETIC_STEP_SECONDS for idx in range(len(levels))]
    for t, token in zip(timestamps, levels):
        if t > max_seconds:
            continue
        level = _to_level(token)
        if level is None:
            continue
        scan.samples.append(Sample(t=t, level=level))
    return scan


def parse_samples(text: str, max_seconds: float) -> List[Sample]:
    return scan_samples(text, max_seconds).samples


def parse_silence_events(text: str, max_seconds: float) -> List[SilenceEvent]:
    """Silence boundaries in encounter order, clamped into ``[0, max_seconds]``."""
    found: List[tuple[int, SilenceKind, str]] = []
    for kind, pattern in (
        (SilenceKind.START, SILENCE_START_PATTERN),
        (SilenceKind.END, SILENCE_END_PATTERN),
    ):
        for match in pattern.finditer(text or ""):
            token = _first_group(match)
            if token is not None:
                found.append((match.start(), kind, token))
    found.sort(key=lambda item: item[0])

    events: List[SilenceEvent] = []
    for _pos, kind, token in found:
        # silence_start can be slightly negative when the filter looks back
        value = float(token)
        if math.isnan(value):
            continue
        events.append(SilenceEvent(kind=kind, t=min(max(value, 0.0), max_seconds)))
    return events


__all__ = [
    "LEVEL_LAYOUTS",
    "SILENCE_END_LAYOUTS",
    "SILENCE_START_LAYOUTS",
    "SYNTHETIC_STEP_SECONDS",
    "SampleScan",
    "TIMESTAMP_LAYOUTS",
    "parse_samples",
    "parse_silence_events",
    "scan_samples",
]
