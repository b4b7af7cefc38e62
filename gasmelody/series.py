from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .errors import InvalidSeriesError

_LOGGER = logging.getLogger("gasmelody.series")

# Below this spread the primary metric is treated as flat.
FLAT_EPSILON = 1e-4

# Field names used by the block feed the series usually comes from.
_BLOCK_ALIASES: Mapping[str, str] = {
    "number": "sequence_number",
    "gasUsed": "activity",
    "baseFeePerGas": "primary_metric",
}


class DataPoint(BaseModel):
    sequence_number: int
    activity: float
    primary_metric: float
    timestamp: int

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _accept_block_fields(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        renamed = dict(data)
        for alias, field in _BLOCK_ALIASES.items():
            if alias in renamed and field not in renamed:
                renamed[field] = renamed.pop(alias)
        return renamed


Series = Sequence[DataPoint]


class NormalizationStats(BaseModel):
    min: float
    range: float
    used_fallback_signal: bool

    model_config = ConfigDict(frozen=True, extra="forbid")


class SeriesSummary(BaseModel):
    count: int
    avg_primary: float
    max_primary: float
    min_primary: float

    model_config = ConfigDict(frozen=True, extra="forbid")


def validate_series(series: Series) -> Series:
    """Check the series is strictly ordered by sequence number.

    Empty and single-point series are valid; they render as silence and a
    single note respectively.
    """

    for previous, current in zip(series, series[1:]):
        if current.sequence_number <= previous.sequence_number:
            raise InvalidSeriesError(
                "series must be strictly increasing by sequence_number "
                f"({previous.sequence_number} then {current.sequence_number})"
            )
    return series


def compute_stats(series: Series) -> NormalizationStats:
    """Derive normalization bounds for one playback or render pass.

    The primary metric drives the melody unless its spread is below
    ``FLAT_EPSILON``; then the activity signal is used instead, with a
    range of 1 when activity is flat too. An empty series gets unit
    bounds on the primary metric.
    """

    validate_series(series)
    if not series:
        return NormalizationStats(min=0.0, range=1.0, used_fallback_signal=False)
    primaries = [point.primary_metric for point in series]
    activities = [point.activity for point in series]
    min_primary, max_primary = min(primaries), max(primaries)
    price_range = max_primary - min_primary

    if price_range < FLAT_EPSILON:
        min_activity = min(activities)
        activity_range = max(activities) - min_activity or 1.0
        _LOGGER.debug(
            "Primary metric flat (range=%g); normalizing on activity.", price_range
        )
        return NormalizationStats(
            min=min_activity, range=activity_range, used_fallback_signal=True
        )
    return NormalizationStats(min=min_primary, range=price_range, used_fallback_signal=False)


def summarize(series: Series) -> SeriesSummary:
    validate_series(series)
    if not series:
        return SeriesSummary(count=0, avg_primary=0.0, max_primary=0.0, min_primary=0.0)
    primaries = [point.primary_metric for point in series]
    return SeriesSummary(
        count=len(primaries),
        avg_primary=sum(primaries) / len(primaries),
        max_primary=max(primaries),
        min_primary=min(primaries),
    )


def load_series(records: Iterable[Mapping[str, Any]]) -> list[DataPoint]:
    """Build a validated series from raw records, sorted by sequence number."""

    try:
        points = [DataPoint.model_validate(record) for record in records]
    except ValidationError as exc:
        raise InvalidSeriesError(f"invalid data point: {exc}") from exc
    points.sort(key=lambda point: point.sequence_number)
    validate_series(points)
    return points
