from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from .errors import InvalidSeriesError
from .series import Series, summarize, validate_series
from .styles import Style

NETWORK_NAME = "Arbitrum One"


class TraitAttribute(BaseModel):
    trait_type: str
    value: str | float

    model_config = ConfigDict(frozen=True, extra="forbid")


class TrackMetadata(BaseModel):
    """Collectible-style metadata for one exported melody."""

    name: str
    description: str
    attributes: tuple[TraitAttribute, ...]

    model_config = ConfigDict(frozen=True, extra="forbid")

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)


def _last_sequence_number(series: Series) -> int:
    validate_series(series)
    if not series:
        raise InvalidSeriesError("export names need at least one data point")
    return series[-1].sequence_number


def build_metadata(series: Series, style: Style, description: str) -> TrackMetadata:
    summary = summarize(series)
    return TrackMetadata(
        name=f"Arb Pulse #{_last_sequence_number(series)}",
        description=description,
        attributes=(
            TraitAttribute(trait_type="Network", value=NETWORK_NAME),
            TraitAttribute(trait_type="Audio Style", value=style.value.upper()),
            TraitAttribute(trait_type="Duration", value=f"{summary.count} Hours"),
            TraitAttribute(trait_type="Average Gas", value=round(summary.avg_primary, 4)),
        ),
    )


def audio_filename(series: Series, style: Style) -> str:
    return f"arb-melody-{style.value}-{_last_sequence_number(series)}.wav"


def metadata_filename(series: Series) -> str:
    return f"arb-pulse-{_last_sequence_number(series)}.json"
