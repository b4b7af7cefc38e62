import numpy as np
import pytest

from gasmelody.scale import SCALE, frequency_for, normalize, scale_index
from gasmelody.series import DataPoint, NormalizationStats, compute_stats


def _point(number: int, primary: float, activity: float) -> DataPoint:
    return DataPoint(
        sequence_number=number, activity=activity, primary_metric=primary, timestamp=number
    )


def test_scale_is_sixteen_ascending_frequencies() -> None:
    assert len(SCALE) == 16
    assert list(SCALE) == sorted(SCALE)
    assert SCALE[0] == pytest.approx(130.81)
    assert SCALE[-1] == pytest.approx(1046.50)


@pytest.mark.parametrize("value", [0.0, 0.03, 0.25, 0.5, 0.7, 0.99, 1.0])
def test_scale_index_stays_in_bounds(value: float) -> None:
    index = scale_index(value)
    assert 0 <= index <= len(SCALE) - 1
    assert index == int(np.floor(value * (len(SCALE) - 1)))


def test_scale_index_endpoints() -> None:
    assert scale_index(0.0) == 0
    assert scale_index(1.0) == len(SCALE) - 1
    assert frequency_for(0.0) == SCALE[0]
    assert frequency_for(1.0) == SCALE[-1]


def test_normalize_clamps_out_of_range_values() -> None:
    stats = NormalizationStats(min=1.0, range=1.0, used_fallback_signal=False)
    assert normalize(_point(1, 5.0, 0), stats) == 1.0
    assert normalize(_point(2, -5.0, 0), stats) == 0.0


def test_fallback_scenario_normalizes_on_activity() -> None:
    series = [_point(1, 1.0, 10), _point(2, 1.0, 50), _point(3, 1.0, 90)]
    stats = compute_stats(series)
    assert stats.used_fallback_signal is True
    assert [normalize(point, stats) for point in series] == [0.0, 0.5, 1.0]


def test_jitter_applies_only_to_floor_values_on_fallback() -> None:
    series = [_point(1, 1.0, 10), _point(2, 1.0, 50), _point(3, 1.0, 90)]
    stats = compute_stats(series)
    rng = np.random.default_rng(3)

    floor_value = normalize(series[0], stats, rng=rng)
    assert 0.0 <= floor_value < 0.1
    assert normalize(series[1], stats, rng=rng) == 0.5
    assert normalize(series[2], stats, rng=rng) == 1.0


def test_no_jitter_on_primary_signal() -> None:
    series = [_point(1, 1.0, 0), _point(2, 2.0, 0)]
    stats = compute_stats(series)
    assert normalize(series[0], stats, rng=np.random.default_rng(0)) == 0.0


def test_jitter_is_reproducible_for_a_seed() -> None:
    series = [_point(1, 1.0, 10), _point(2, 1.0, 90)]
    stats = compute_stats(series)
    first = normalize(series[0], stats, rng=np.random.default_rng(42))
    second = normalize(series[0], stats, rng=np.random.default_rng(42))
    assert first == second
