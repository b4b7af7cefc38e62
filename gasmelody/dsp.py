# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Sample-level building blocks shared by every voice recipe.

1. Oscillators: band-limited waveforms rendered from sample 0 of a note
2. Automation: parameter curves built from set / linear / exponential events
3. Filters: RBJ biquad low-pass, static or swept block by block
4. Mixing: adding a rendered voice into a longer buffer
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Literal, TypeAlias, cast

import numpy as np
from numpy.typing import NDArray
from scipy.signal import decimate, lfilter  # type: ignore[import]

from .config import SAMPLE_RATE

FloatArray: TypeAlias = NDArray[np.float64]
OscFn: TypeAlias = Callable[[float, int, int], FloatArray]
RampKind = Literal["set", "linear", "exponential"]

# Block length for swept filters, one render quantum.
FILTER_BLOCK = 128
_OVERSAMPLE = 2


# =============================================================================
# OSCILLATORS
# =============================================================================


def _phase(freq: float, num_samples: int, sr: int) -> FloatArray:
    """Normalized phase in [0, 1) for each sample, starting at 0."""
    return (np.arange(num_samples, dtype=np.float64) * (freq / sr)) % 1.0


def _poly_blep(phase: FloatArray, dt: float) -> FloatArray:
    """4-point PolyBLEP residual for a unit step at phase 0."""
    correction = np.zeros_like(phase)

    m1 = phase < dt
    t1 = phase[m1] / dt
    correction[m1] = t1 * t1 * (2 * t1 - 3) + 1

    m2 = (phase >= dt) & (phase < 2 * dt)
    t2 = phase[m2] / dt - 1
    correction[m2] = t2 * t2 * (2 * t2 - 3)

    m3 = (phase > 1 - 2 * dt) & (phase <= 1 - dt)
    t3 = (phase[m3] - 1) / dt + 1
    correction[m3] = t3 * t3 * (2 * t3 + 3)

    m4 = phase > 1 - dt
    t4 = (phase[m4] - 1) / dt
    correction[m4] = t4 * t4 * (2 * t4 + 3) + 1
    return correction


def _downsample(signal_high: FloatArray, num_samples: int) -> FloatArray:
    signal = np.asarray(
        decimate(signal_high, _OVERSAMPLE, ftype="fir", zero_phase=True), dtype=np.float64
    )
    if len(signal) > num_samples:
        signal = signal[:num_samples]
    elif len(signal) < num_samples:
        signal = np.pad(signal, (0, num_samples - len(signal)))
    return signal


def sine(freq: float, num_samples: int, sr: int = SAMPLE_RATE) -> FloatArray:
    return np.sin(2 * np.pi * _phase(freq, num_samples, sr))


def triangle(freq: float, num_samples: int, sr: int = SAMPLE_RATE) -> FloatArray:
    phase = _phase(freq, num_samples, sr)
    return 2 * np.abs(2 * (phase - np.floor(phase + 0.5))) - 1


def sawtooth(freq: float, num_samples: int, sr: int = SAMPLE_RATE) -> FloatArray:
    """Anti-aliased sawtooth: PolyBLEP at twice the rate, then decimated."""
    if num_samples <= 0:
        return np.zeros(0)
    sr_high = sr * _OVERSAMPLE
    phase = _phase(freq, num_samples * _OVERSAMPLE, sr_high)
    naive = 2.0 * phase - 1.0
    return _downsample(naive - _poly_blep(phase, freq / sr_high), num_samples)


def square(freq: float, num_samples: int, sr: int = SAMPLE_RATE) -> FloatArray:
    """Anti-aliased square: rising edge at phase 0, falling edge at 0.5."""
    if num_samples <= 0:
        return np.zeros(0)
    sr_high = sr * _OVERSAMPLE
    dt = freq / sr_high
    phase = _phase(freq, num_samples * _OVERSAMPLE, sr_high)
    naive = np.where(phase < 0.5, 1.0, -1.0)
    correction = _poly_blep(phase, dt) - _poly_blep((phase + 0.5) % 1.0, dt)
    return _downsample(naive + correction, num_samples)


OSCILLATORS: Mapping[str, OscFn] = MappingProxyType(
    {
        "sine": sine,
        "triangle": triangle,
        "sawtooth": sawtooth,
        "square": square,
    }
)


def oscillator(waveform: str, freq: float, num_samples: int, sr: int = SAMPLE_RATE) -> FloatArray:
    if waveform not in OSCILLATORS:
        raise ValueError(f"Unknown waveform: {waveform}. Valid: {list(OSCILLATORS.keys())}")
    return OSCILLATORS[waveform](freq, num_samples, sr)


# =============================================================================
# AUTOMATION
# =============================================================================


@dataclass(frozen=True, slots=True)
class ParamEvent:
    """One scheduled parameter change, in seconds from the start of the note.

    ``set`` jumps to ``value`` at ``time``; ``linear`` and ``exponential``
    ramp from the previous event's time and value to reach ``value`` at
    ``time``. The last value holds afterwards.
    """

    kind: RampKind
    time: float
    value: float


def automation_curve(
    initial: float,
    events: Sequence[ParamEvent],
    num_samples: int,
    sr: int = SAMPLE_RATE,
) -> FloatArray:
    t = np.arange(num_samples, dtype=np.float64) / sr
    curve = np.full(num_samples, initial, dtype=np.float64)
    prev_time, prev_value = 0.0, initial

    for event in events:
        start = int(np.searchsorted(t, prev_time))
        end = int(np.searchsorted(t, event.time))
        span = event.time - prev_time
        if end > start and span > 0:
            frac = (t[start:end] - prev_time) / span
            match event.kind:
                case "linear":
                    curve[start:end] = prev_value + (event.value - prev_value) * frac
                case "exponential":
                    if prev_value * event.value <= 0:
                        raise ValueError("exponential ramps need non-zero values of one sign")
                    curve[start:end] = prev_value * (event.value / prev_value) ** frac
                case "set":
                    pass
        curve[end:] = event.value
        prev_time, prev_value = event.time, event.value

    return curve


# =============================================================================
# FILTERS
# =============================================================================


@lru_cache(maxsize=1024)
def lowpass_coeffs(
    cutoff: float, q: float, sr: int = SAMPLE_RATE
) -> tuple[FloatArray, FloatArray]:
    """RBJ cookbook low-pass biquad, normalized so a[0] == 1."""
    cutoff = min(max(cutoff, 1.0), sr * 0.49)
    w0 = 2 * np.pi * cutoff / sr
    alpha = np.sin(w0) / (2 * q)
    cos_w0 = np.cos(w0)
    b = np.array([(1 - cos_w0) / 2, 1 - cos_w0, (1 - cos_w0) / 2])
    a = np.array([1 + alpha, -2 * cos_w0, 1 - alpha])
    return b / a[0], a / a[0]


def apply_lowpass(signal: FloatArray, cutoff: float, q: float, sr: int = SAMPLE_RATE) -> FloatArray:
    b, a = lowpass_coeffs(float(cutoff), float(q), sr)
    return np.asarray(lfilter(b, a, signal), dtype=np.float64)


def apply_swept_lowpass(
    signal: FloatArray,
    cutoffs: FloatArray,
    q: float,
    sr: int = SAMPLE_RATE,
    block: int = FILTER_BLOCK,
) -> FloatArray:
    """Low-pass whose cutoff follows ``cutoffs``, updated once per block."""
    output = np.empty_like(signal)
    state = np.zeros(2)
    for start in range(0, len(signal), block):
        stop = min(start + block, len(signal))
        # Round so slow sweeps reuse cached coefficients.
        b, a = lowpass_coeffs(round(float(cutoffs[start]), 2), float(q), sr)
        filtered, state = lfilter(b, a, signal[start:stop], zi=state)
        output[start:stop] = filtered
    return output


# =============================================================================
# MIXING
# =============================================================================


def add_voice(
    buffer: FloatArray, samples: FloatArray, start_index: int, sr: int = SAMPLE_RATE
) -> None:
    """Add ``samples`` into ``buffer`` at ``start_index``, fading out if clipped."""
    if start_index >= len(buffer) or len(samples) == 0:
        return
    start_index = max(start_index, 0)
    end_index = start_index + len(samples)

    if end_index <= len(buffer):
        buffer[start_index:end_index] += samples
        return

    available = len(buffer) - start_index
    clipped = samples[:available].copy()
    # Quick fade-out to prevent a click from the abrupt cutoff.
    fade_samples = min(int(sr * 0.01), available // 4)
    if fade_samples > 1:
        clipped[-fade_samples:] *= np.linspace(1, 0, fade_samples)
    buffer[start_index:] += clipped


def silence(num_samples: int) -> FloatArray:
    return cast(FloatArray, np.zeros(max(num_samples, 0), dtype=np.float64))
