from __future__ import annotations

import math

import numpy as np

from .series import DataPoint, NormalizationStats

# Minor pentatonic on C, three octaves (C3 .. C6), ascending.
SCALE: tuple[float, ...] = (
    130.81,  # C3
    155.56,  # Eb3
    174.61,  # F3
    196.00,  # G3
    233.08,  # Bb3
    261.63,  # C4
    311.13,  # Eb4
    349.23,  # F4
    392.00,  # G4
    466.16,  # Bb4
    523.25,  # C5
    622.25,  # Eb5
    698.46,  # F5
    783.99,  # G5
    932.33,  # Bb5
    1046.50,  # C6
)

JITTER_SPAN = 0.1


def normalize(
    point: DataPoint,
    stats: NormalizationStats,
    *,
    rng: np.random.Generator | None = None,
) -> float:
    """Map one point into [0, 1] on the signal selected by ``stats``.

    When the activity fallback is in use and the point sits on the floor,
    a small jitter from ``rng`` keeps flat stretches from repeating the
    same note. Without ``rng`` the result is the plain clamped ratio.
    """

    value = point.activity if stats.used_fallback_signal else point.primary_metric
    normalized = (value - stats.min) / stats.range
    if rng is not None and stats.used_fallback_signal and normalized == 0:
        normalized = float(rng.uniform(0.0, JITTER_SPAN))
    return min(max(normalized, 0.0), 1.0)


def scale_index(normalized: float, scale: tuple[float, ...] = SCALE) -> int:
    index = math.floor(normalized * (len(scale) - 1))
    return min(max(index, 0), len(scale) - 1)


def frequency_for(normalized: float, scale: tuple[float, ...] = SCALE) -> float:
    return scale[scale_index(normalized, scale)]
