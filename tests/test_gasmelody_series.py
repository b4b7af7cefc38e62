import pytest
from pydantic import ValidationError

from gasmelody.errors import InvalidSeriesError
from gasmelody.series import DataPoint, compute_stats, load_series, summarize, validate_series


def _point(number: int, primary: float, activity: float = 0.0) -> DataPoint:
    return DataPoint(
        sequence_number=number,
        activity=activity,
        primary_metric=primary,
        timestamp=1_700_000_000 + number,
    )


def test_stats_use_primary_when_it_varies() -> None:
    series = [_point(1, 0.01, 5), _point(2, 0.03, 7), _point(3, 0.02, 9)]
    stats = compute_stats(series)
    assert stats.used_fallback_signal is False
    assert stats.min == pytest.approx(0.01)
    assert stats.range == pytest.approx(0.02)


def test_stats_fall_back_to_activity_when_primary_is_flat() -> None:
    series = [_point(1, 0.01, 10), _point(2, 0.01 + 5e-5, 50), _point(3, 0.01, 90)]
    stats = compute_stats(series)
    assert stats.used_fallback_signal is True
    assert stats.min == 10
    assert stats.range == 80


def test_flat_activity_range_defaults_to_one() -> None:
    stats = compute_stats([_point(1, 2.0, 42), _point(2, 2.0, 42)])
    assert stats.used_fallback_signal is True
    assert stats.range == 1


def test_single_point_series_is_valid() -> None:
    stats = compute_stats([_point(7, 3.0, 11)])
    assert stats.used_fallback_signal is True
    assert stats.min == 11
    assert stats.range == 1


def test_primary_range_at_threshold_keeps_primary_signal() -> None:
    series = [_point(1, 0.0, 10), _point(2, 1e-4, 50)]
    stats = compute_stats(series)
    assert stats.used_fallback_signal is False
    assert stats.min == 0.0
    assert stats.range == pytest.approx(1e-4)


def test_empty_series_gets_unit_bounds() -> None:
    stats = compute_stats([])
    assert stats.used_fallback_signal is False
    assert stats.min == 0.0
    assert stats.range == 1.0


def test_empty_series_summary_is_zero() -> None:
    summary = summarize([])
    assert summary.count == 0
    assert summary.avg_primary == summary.max_primary == summary.min_primary == 0.0
    assert load_series([]) == []


def test_unordered_series_is_rejected() -> None:
    with pytest.raises(InvalidSeriesError):
        validate_series([_point(2, 1.0), _point(1, 2.0)])
    with pytest.raises(InvalidSeriesError):
        validate_series([_point(1, 1.0), _point(1, 2.0)])


def test_data_point_is_frozen() -> None:
    point = _point(1, 1.0)
    with pytest.raises(ValidationError):
        point.primary_metric = 2.0  # type: ignore[misc]


def test_summarize_reports_primary_metric() -> None:
    summary = summarize([_point(1, 1.0), _point(2, 2.0), _point(3, 6.0)])
    assert summary.count == 3
    assert summary.avg_primary == pytest.approx(3.0)
    assert summary.max_primary == 6.0
    assert summary.min_primary == 1.0


def test_load_series_accepts_block_fields_and_sorts() -> None:
    records = [
        {"number": 12, "gasUsed": 900, "baseFeePerGas": 0.02, "timestamp": 20},
        {"number": 11, "gasUsed": 800, "baseFeePerGas": 0.01, "timestamp": 10},
    ]
    series = load_series(records)
    assert [point.sequence_number for point in series] == [11, 12]
    assert series[0].activity == 800
    assert series[1].primary_metric == 0.02


def test_load_series_rejects_bad_records() -> None:
    with pytest.raises(InvalidSeriesError):
        load_series([{"number": "not-a-number", "timestamp": 1}])
