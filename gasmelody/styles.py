from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Literal

from .errors import UnknownStyleError

_LOGGER = logging.getLogger("gasmelody.styles")

Waveform = Literal["sine", "triangle", "sawtooth", "square"]


class Style(str, Enum):
    CYBERPUNK = "cyberpunk"
    ETHEREAL = "ethereal"
    RETRO = "retro"

    @classmethod
    def parse(cls, value: str | Style) -> Style:
        if isinstance(value, Style):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            valid = ", ".join(style.value for style in cls)
            raise UnknownStyleError(f"Unknown style: {value!r}. Valid: {valid}") from exc


@dataclass(frozen=True, slots=True)
class StyleParams:
    """Oscillator, filter and envelope constants of one synthesis recipe.

    ``secondary_ratio`` multiplies the note frequency for the second
    oscillator and ``secondary_gain`` is its level relative to the primary.
    ``duration_scale`` stretches (pad) or shortens (chiptune) the nominal
    note duration for the amplitude envelope.
    """

    primary: Waveform
    secondary: Waveform
    secondary_ratio: float
    secondary_gain: float
    filter_q: float
    peak_gain: float
    duration_scale: float


# Resonance of 5 dB expressed as a linear Q.
_RESONANT_Q = 10 ** (5 / 20)
_BUTTERWORTH_Q = 1 / 2**0.5

STYLE_PARAMS: Mapping[Style, StyleParams] = MappingProxyType(
    {
        Style.CYBERPUNK: StyleParams(
            primary="sawtooth",
            secondary="square",
            secondary_ratio=0.5,
            secondary_gain=0.4,
            filter_q=_RESONANT_Q,
            peak_gain=0.2,
            duration_scale=1.0,
        ),
        Style.ETHEREAL: StyleParams(
            primary="sine",
            secondary="triangle",
            secondary_ratio=1.0,
            secondary_gain=0.4,
            filter_q=_BUTTERWORTH_Q,
            peak_gain=0.3,
            duration_scale=1.5,
        ),
        Style.RETRO: StyleParams(
            primary="square",
            secondary="square",
            secondary_ratio=2.0,
            secondary_gain=1.0,
            filter_q=_BUTTERWORTH_Q,
            peak_gain=0.15,
            duration_scale=0.8,
        ),
    }
)


def resolve_style(style: Style | str, *, strict: bool) -> Style | str:
    """Parse ``style``; outside strict mode an unknown tag passes through unchanged.

    The unknown tag then reaches the synthesizer, which renders silence for it.
    """

    try:
        return Style.parse(style)
    except UnknownStyleError:
        if strict:
            raise
        _LOGGER.warning("Unknown style %r; notes will render silent.", style)
        return style
