"""Adaptive activity threshold from a population percentile."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .types import Sample


def percentile_level(levels: Sequence[float], percentile: float) -> float:
    """Level at rank ``floor(percentile * N)`` of the ascending sort (no interpolation)."""
    if len(levels) == 0:
        raise ValueError("percentile of an empty sequence")
    ordered = np.sort(np.asarray(levels, dtype=np.float64))
    rank = int(math.floor(percentile * len(ordered)))
    rank = min(max(rank, 0), len(ordered) - 1)
    return float(ordered[rank])


def select_threshold(samples: Sequence[Sample], percentile: float, floor_level: float) -> float:
    if not samples:
        raise ValueError("cannot select a threshold without samples")
    value = percentile_level([sample.level for sample in samples], percentile)
    return max(value, float(floor_level))


__all__ = ["percentile_level", "select_threshold"]
