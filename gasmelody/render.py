from __future__ import annotations

import logging
import time

import numpy as np

from . import dsp
from .config import EngineSettings, get_settings
from .dsp import FloatArray
from .series import Series, compute_stats
from .styles import Style, resolve_style
from .voices import Voice, build_note_events, mix_events
from .wav import encode_wav

_LOGGER = logging.getLogger("gasmelody.render")


class OfflineBuffer:
    """Pre-allocated mix buffer; voices land at their exact start sample."""

    def __init__(self, duration_seconds: float, *, sample_rate: int) -> None:
        self.sample_rate = sample_rate
        self.samples: FloatArray = np.zeros(int(sample_rate * duration_seconds), dtype=np.float64)

    def add(self, voice: Voice) -> None:
        start_index = int(round(voice.start_time_seconds * self.sample_rate))
        dsp.add_voice(self.samples, voice.samples, start_index, self.sample_rate)


def render_buffer(
    series: Series,
    style: Style | str,
    tempo_seconds: float,
    *,
    settings: EngineSettings | None = None,
) -> FloatArray:
    """Render the whole series into one mono buffer, master gain applied.

    Runs synchronously with no clock involved; identical arguments give
    identical samples.
    """

    settings = settings or get_settings()
    if tempo_seconds <= 0:
        raise ValueError("tempo_seconds must be positive")
    resolved = resolve_style(style, strict=settings.strict)

    stats = compute_stats(series)
    rng = np.random.default_rng(settings.jitter_seed)
    buffer = OfflineBuffer(
        len(series) * tempo_seconds + settings.render_tail_seconds,
        sample_rate=settings.sample_rate,
    )

    started = time.perf_counter()
    events = build_note_events(series, stats, resolved, tempo_seconds, rng=rng)
    mix_events(events, buffer, settings)
    _LOGGER.debug(
        "Rendered %d notes (%s, %.3fs/note) in %.2fs.",
        len(series),
        resolved,
        tempo_seconds,
        time.perf_counter() - started,
    )

    samples = buffer.samples
    samples *= settings.master_gain
    return samples


def render_to_file(
    series: Series,
    style: Style | str,
    tempo_seconds: float,
    *,
    settings: EngineSettings | None = None,
) -> bytes:
    settings = settings or get_settings()
    samples = render_buffer(series, style, tempo_seconds, settings=settings)
    return encode_wav(samples, sample_rate=settings.sample_rate)
