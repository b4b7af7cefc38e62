"""Per-style voice recipes: one note event in, one block of samples out.

Voices never look at a clock. Every time inside a recipe is an offset from
the note's own start, so the same event renders to the same samples whether
it is mixed into a live output stream or into an offline buffer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol, cast

import numpy as np

from . import dsp
from .config import EngineSettings, get_settings
from .dsp import FloatArray, ParamEvent
from .errors import UnknownStyleError
from .scale import SCALE, frequency_for, normalize
from .series import DataPoint, NormalizationStats, Series
from .styles import STYLE_PARAMS, Style, StyleParams

_LOGGER = logging.getLogger("gasmelody.voices")

_ATTACK_SECONDS = 0.02
_GATE_ON_SECONDS = 0.005
_SWEEP_SECONDS = 0.1
_DECAY_FLOOR = 0.001
_PAD_CUTOFF_HZ = 1000.0
_CHIP_CUTOFF_HZ = 3000.0


@dataclass(frozen=True, slots=True)
class NoteEvent:
    frequency_hz: float
    start_time_seconds: float
    style: Style
    note_duration_seconds: float
    normalized: float = 0.0


@dataclass(frozen=True, slots=True)
class Voice:
    start_time_seconds: float
    samples: FloatArray


class MixTarget(Protocol):
    """Anything a voice can be mixed into: the live device or an offline buffer."""

    def add(self, voice: Voice) -> None: ...


def note_event(
    point: DataPoint,
    stats: NormalizationStats,
    style: Style | str,
    tempo_seconds: float,
    start_time_seconds: float,
    *,
    rng: np.random.Generator | None = None,
    scale: tuple[float, ...] = SCALE,
) -> NoteEvent:
    normalized = normalize(point, stats, rng=rng)
    return NoteEvent(
        frequency_hz=frequency_for(normalized, scale),
        start_time_seconds=start_time_seconds,
        style=cast(Style, style),
        note_duration_seconds=tempo_seconds,
        normalized=normalized,
    )


def build_note_events(
    series: Series,
    stats: NormalizationStats,
    style: Style | str,
    tempo_seconds: float,
    *,
    rng: np.random.Generator | None = None,
    scale: tuple[float, ...] = SCALE,
) -> Iterator[NoteEvent]:
    """Yield one event per point, spaced ``tempo_seconds`` apart from 0."""
    for index, point in enumerate(series):
        yield note_event(
            point, stats, style, tempo_seconds, index * tempo_seconds, rng=rng, scale=scale
        )


def voice_seconds(event: NoteEvent, settings: EngineSettings) -> float:
    """Envelope length plus the safety tail that lets the release finish."""
    params = STYLE_PARAMS.get(event.style)
    scale = params.duration_scale if params is not None else 1.0
    envelope = event.note_duration_seconds * max(scale, 1.0)
    return envelope + settings.safety_tail_seconds


def synthesize(event: NoteEvent, settings: EngineSettings | None = None) -> Voice:
    settings = settings or get_settings()
    sr = settings.sample_rate
    num_samples = int(round(voice_seconds(event, settings) * sr))

    match event.style:
        case Style.CYBERPUNK:
            samples = _cyberpunk(event, STYLE_PARAMS[Style.CYBERPUNK], num_samples, sr)
        case Style.ETHEREAL:
            samples = _ethereal(event, STYLE_PARAMS[Style.ETHEREAL], num_samples, sr)
        case Style.RETRO:
            samples = _retro(event, STYLE_PARAMS[Style.RETRO], num_samples, sr)
        case _:
            if settings.strict:
                raise UnknownStyleError(f"No voice recipe for style {event.style!r}")
            _LOGGER.warning("No voice recipe for style %r; rendering silence.", event.style)
            samples = dsp.silence(num_samples)

    return Voice(start_time_seconds=event.start_time_seconds, samples=samples)


def mix_events(
    events: Iterable[NoteEvent], target: MixTarget, settings: EngineSettings | None = None
) -> int:
    """Synthesize each event into ``target``; returns how many voices were added."""
    settings = settings or get_settings()
    count = 0
    for event in events:
        target.add(synthesize(event, settings))
        count += 1
    return count


def _oscillators(
    event: NoteEvent, params: StyleParams, num_samples: int, sr: int
) -> tuple[FloatArray, FloatArray]:
    freq = event.frequency_hz
    primary = dsp.oscillator(params.primary, freq, num_samples, sr)
    secondary = dsp.oscillator(params.secondary, freq * params.secondary_ratio, num_samples, sr)
    return primary, secondary


def _decay_envelope(
    params: StyleParams, attack_end: float, decay_end: float, end: float, num_samples: int, sr: int
) -> FloatArray:
    events = (
        ParamEvent("linear", attack_end, params.peak_gain),
        ParamEvent("exponential", decay_end, _DECAY_FLOOR),
        ParamEvent("linear", end, 0.0),
    )
    return dsp.automation_curve(0.0, events, num_samples, sr)


def _cyberpunk(event: NoteEvent, params: StyleParams, num_samples: int, sr: int) -> FloatArray:
    primary, sub = _oscillators(event, params, num_samples, sr)
    mix = primary + sub * params.secondary_gain

    freq = event.frequency_hz
    cutoffs = dsp.automation_curve(
        freq * 1.5, (ParamEvent("exponential", _SWEEP_SECONDS, freq * 4),), num_samples, sr
    )
    filtered = dsp.apply_swept_lowpass(mix, cutoffs, params.filter_q, sr)

    end = num_samples / sr
    envelope = _decay_envelope(
        params, _ATTACK_SECONDS, event.note_duration_seconds, end, num_samples, sr
    )
    return filtered * envelope


def _ethereal(event: NoteEvent, params: StyleParams, num_samples: int, sr: int) -> FloatArray:
    primary, warmth = _oscillators(event, params, num_samples, sr)
    mix = primary + warmth * params.secondary_gain
    filtered = dsp.apply_lowpass(mix, _PAD_CUTOFF_HZ, params.filter_q, sr)

    # Rings past the next note on purpose; the overlap is the pad.
    duration = event.note_duration_seconds * params.duration_scale
    end = num_samples / sr
    envelope = _decay_envelope(params, duration * 0.4, duration, end, num_samples, sr)
    return filtered * envelope


def _retro(event: NoteEvent, params: StyleParams, num_samples: int, sr: int) -> FloatArray:
    primary, sparkle = _oscillators(event, params, num_samples, sr)
    mix = primary + sparkle
    filtered = dsp.apply_lowpass(mix, _CHIP_CUTOFF_HZ, params.filter_q, sr)

    duration = event.note_duration_seconds * params.duration_scale
    gate = dsp.automation_curve(
        0.0,
        (
            ParamEvent("set", _GATE_ON_SECONDS, params.peak_gain),
            ParamEvent("set", duration, 0.0),
        ),
        num_samples,
        sr,
    )
    return filtered * gate
