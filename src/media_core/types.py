"""Dataclasses shared across the analysis core."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

MIN_LEVEL_DB = -144.0
MAX_SECONDS_CEILING = 21600.0


@dataclass(slots=True, frozen=True)
class Sample:
    """One loudness measurement (seconds, dBFS)."""

    t: float
    level: float


class SilenceKind(str, Enum):
    START = "start"
    END = "end"


@dataclass(slots=True, frozen=True)
class SilenceEvent:
    kind: SilenceKind
    t: float


@dataclass(slots=True, frozen=True)
class Interval:
    start: float
    end: float

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"interval end {self.end} precedes start {self.start}")

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, float]:
        return {"start": self.start, "end": self.end}


class AnalysisMethod(str, Enum):
    PRIMARY_MEASUREMENT = "primary_measurement"
    FALLBACK_SILENCE = "fallback_silence"
    NO_AUDIO = "no_audio"


@dataclass(slots=True, frozen=True)
class AnalysisConfig:
    """Per-request knobs; immutable for one analysis run."""

    max_seconds: float = 1200.0
    percentile: float = 0.6
    floor_level: float = -35.0
    pad: float = 1.2
    merge_gap: float = 1.0
    silence_min_duration: float = 0.5

    def __post_init__(self) -> None:
        if not math.isfinite(self.max_seconds) or self.max_seconds <= 0:
            raise ValueError("max_seconds must be > 0")
        if not 0.0 <= self.percentile <= 1.0:
            raise ValueError("percentile must be within [0, 1]")
        if not math.isfinite(self.floor_level):
            raise ValueError("floor_level must be finite")
        if self.pad < 0:
            raise ValueError("pad must be >= 0")
        if self.merge_gap < 0:
            raise ValueError("merge_gap must be >= 0")
        if self.silence_min_duration <= 0:
            raise ValueError("silence_min_duration must be > 0")

    @classmethod
    def clamped(cls, max_seconds: float, **kwargs: Any) -> "AnalysisConfig":
        """Build a config with ``max_seconds`` pulled under the ceiling."""
        return cls(max_seconds=min(float(max_seconds), MAX_SECONDS_CEILING), **kwargs)


@dataclass(slots=True)
class AnalysisResult:
    threshold_used: float
    ranges: List[Interval]
    sample_count: int
    method: AnalysisMethod
    raw_excerpt: Optional[str] = None
    raw_ranges_count: int = 0
    notes: List[str] = field(default_factory=list)

    @property
    def note(self) -> Optional[str]:
        return "; ".join(self.notes) if self.notes else None

    def to_payload(self, include_raw: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "threshold": self.threshold_used,
            "ranges": [interval.to_dict() for interval in self.ranges],
            "points": self.sample_count,
            "sampleCount": self.sample_count,
            "method": self.method.value,
            "note": self.note,
        }
        if include_raw:
            payload["diagnostics"] = {
                "raw_ranges": self.raw_ranges_count,
                "notes": list(self.notes),
                "raw_excerpt": self.raw_excerpt,
            }
        return payload
