import numpy as np
import pytest

from src.media_core.threshold import percentile_level, select_threshold
from src.media_core.types import Sample


def _samples(levels):
    return [Sample(float(idx), float(level)) for idx, level in enumerate(levels)]


def test_scenario_threshold_uses_population_rank():
    samples = _samples([-40, -10, -9, -41, -8])
    # sorted: -41 -40 -10 -9 -8, rank floor(0.6 * 5) = 3 -> -9
    assert select_threshold(samples, 0.6, -35) == -9.0


def test_floor_level_wins_over_quiet_percentile():
    samples = _samples([-60, -55, -50, -48])
    assert select_threshold(samples, 0.5, -35) == -35.0


def test_percentile_one_clamps_to_loudest():
    assert percentile_level([-3.0, -1.0, -2.0], 1.0) == -1.0
    assert percentile_level([-3.0, -1.0, -2.0], 0.0) == -3.0


def test_threshold_is_monotonic_in_percentile():
    rng = np.random.default_rng(7)
    samples = _samples(rng.uniform(-70, -1, size=257))
    previous = None
    for percentile in np.linspace(0, 1, 41):
        value = select_threshold(samples, float(percentile), -50)
        assert value >= -50
        if previous is not None:
            assert value >= previous
        previous = value


def test_empty_samples_are_rejected():
    with pytest.raises(ValueError):
        select_threshold([], 0.6, -35)
