from __future__ import annotations


class GasMelodyError(Exception):
    """Base error for the gasmelody library."""


class InvalidSeriesError(GasMelodyError):
    """Raised when an input series is malformed or not ordered by sequence number."""


class InvalidConfigError(GasMelodyError):
    """Raised when settings cannot be parsed or validated."""


class UnknownStyleError(GasMelodyError):
    """Raised when a voice is requested for a style with no synthesis recipe."""


class EncoderInvariantError(GasMelodyError):
    """Raised when an encoded WAV header disagrees with its payload."""


class InvalidWavError(GasMelodyError):
    """Raised when bytes do not start with a canonical PCM WAV header."""


class PlaybackError(GasMelodyError):
    """Raised when live playback cannot be started."""


class DescriptionError(GasMelodyError):
    """Raised when the description provider fails to produce text."""


class DescriptionUnavailableError(DescriptionError):
    """Raised when no description provider is installed or configured."""
