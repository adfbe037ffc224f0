"""Raw activity intervals from loudness samples or silence boundaries."""

from __future__ import annotations

from typing import List, Optional, Sequence

from .types import Interval, Sample, SilenceEvent, SilenceKind


def build_active_ranges(samples: Sequence[Sample], threshold: float) -> List[Interval]:
    """Contiguous runs of samples at or above ``threshold``.

    Interval bounds are the times of the first and last active sample of each
    run. A run still open when the samples end is closed at the last sample.
    """
    ranges: List[Interval] = []
    start: Optional[float] = None
    end = 0.0
    for sample in samples:
        if sample.level >= threshold:
            if start is None:
                start = sample.t
            end = sample.t
        elif start is not None:
            ranges.append(Interval(start, end))
            start = None
    if start is not None:
        ranges.append(Interval(start, end))
    return ranges


def _clamp(value: float, horizon: float) -> float:
    return min(max(value, 0.0), horizon)


def invert_silence(events: Sequence[SilenceEvent], horizon: float) -> List[Interval]:
    """Complement of the silences described by ``events`` over ``[0, horizon]``."""
    ranges: List[Interval] = []
    cursor = 0.0
    silent = False
    for event in events:
        t = _clamp(event.t, horizon)
        if event.kind is SilenceKind.START:
            if silent:
                continue
            if t > cursor:
                ranges.append(Interval(cursor, t))
            silent = True
        else:
            # an END without a START means the clip opened in silence
            cursor = max(cursor, t)
            silent = False
    if not silent and cursor < horizon:
        ranges.append(Interval(cursor, horizon))
    return ranges


__all__ = ["build_active_ranges", "invert_silence"]
