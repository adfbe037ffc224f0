"""Padding and greedy union of activity intervals."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from .types import Interval


def pad_intervals(intervals: Iterable[Interval], pad: float) -> List[Interval]:
    return [Interval(max(0.0, item.start - pad), item.end + pad) for item in intervals]


def merge_intervals(intervals: Iterable[Interval], merge_gap: float) -> List[Interval]:
    """Union intervals whose gap is ``<= merge_gap``; output is sorted and disjoint."""
    ordered = sorted(intervals, key=lambda item: (item.start, item.end))
    if not ordered:
        return []
    merged: List[Interval] = []
    cur_start, cur_end = ordered[0].start, ordered[0].end
    for item in ordered[1:]:
        if item.start - cur_end <= merge_gap:
            cur_end = max(cur_end, item.end)
        else:
            merged.append(Interval(cur_start, cur_end))
            cur_start, cur_end = item.start, item.end
    merged.append(Interval(cur_start, cur_end))
    return merged


def merge_ranges(raw: Sequence[Interval], pad: float, merge_gap: float) -> List[Interval]:
    # padding happens first, so pads alone can bridge a gap wider than merge_gap
    return merge_intervals(pad_intervals(raw, pad), merge_gap)


__all__ = ["merge_intervals", "merge_ranges", "pad_intervals"]
