from __future__ import annotations

from .config import SAMPLE_RATE, EngineSettings, get_settings
from .describe import FALLBACK_DESCRIPTION, describe, describe_sync
from .device import DeviceState, OutputDevice
from .errors import (
    EncoderInvariantError,
    GasMelodyError,
    InvalidSeriesError,
    InvalidWavError,
    UnknownStyleError,
)
from .logging_utils import configure_logging as _configure_logging
from .metadata import TrackMetadata, audio_filename, build_metadata, metadata_filename
from .playback import PlaybackScheduler, PlaybackState
from .render import render_buffer, render_to_file
from .scale import SCALE, frequency_for, normalize, scale_index
from .series import (
    DataPoint,
    NormalizationStats,
    SeriesSummary,
    compute_stats,
    load_series,
    summarize,
)
from .styles import Style
from .voices import NoteEvent, Voice, build_note_events, synthesize
from .wav import WavHeader, decode_header, encode_wav

__all__ = [
    "SAMPLE_RATE",
    "SCALE",
    "DataPoint",
    "DeviceState",
    "EncoderInvariantError",
    "EngineSettings",
    "FALLBACK_DESCRIPTION",
    "GasMelodyError",
    "InvalidSeriesError",
    "InvalidWavError",
    "NormalizationStats",
    "NoteEvent",
    "OutputDevice",
    "PlaybackScheduler",
    "PlaybackState",
    "SeriesSummary",
    "Style",
    "TrackMetadata",
    "UnknownStyleError",
    "Voice",
    "WavHeader",
    "audio_filename",
    "build_metadata",
    "build_note_events",
    "compute_stats",
    "decode_header",
    "describe",
    "describe_sync",
    "encode_wav",
    "frequency_for",
    "get_settings",
    "load_series",
    "metadata_filename",
    "normalize",
    "render_buffer",
    "render_to_file",
    "scale_index",
    "summarize",
    "synthesize",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
