from __future__ import annotations

import struct
from collections.abc import Sequence
from typing import Any

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from .config import SAMPLE_RATE
from .errors import EncoderInvariantError, InvalidWavError

AudioNumbers = NDArray[np.floating[Any]] | Sequence[float]

HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
PCM_FORMAT = 1
_BYTES_PER_SAMPLE = BITS_PER_SAMPLE // 8
# RIFF chunk header through data chunk header, little-endian.
_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


class WavHeader(BaseModel):
    file_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def frame_count(self) -> int:
        return self.data_size // self.block_align if self.block_align else 0


def to_pcm16(samples: AudioNumbers) -> NDArray[np.int16]:
    """Clamp to [-1, 1] and scale asymmetrically onto the int16 range.

    Negative samples scale by 32768 and the rest by 32767; the product is
    truncated toward zero.
    """

    clamped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 32768.0, clamped * 32767.0)
    return np.trunc(scaled).astype(np.int16)


def encode_wav(samples: AudioNumbers, *, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Serialize a ``(frames,)`` or ``(frames, channels)`` buffer as 16-bit PCM WAV."""

    array = np.asarray(samples, dtype=np.float64)
    match array.ndim:
        case 1:
            channels = 1
        case 2:
            channels = array.shape[1]
        case _:
            raise ValueError("samples must be shaped (frames,) or (frames, channels)")
    if channels < 1:
        raise ValueError("samples must have at least one channel")

    # Row-major flattening interleaves the channels frame by frame.
    payload = to_pcm16(array).reshape(-1).astype("<i2").tobytes()
    data_size = len(payload)
    block_align = channels * _BYTES_PER_SAMPLE
    header = _HEADER.pack(
        b"RIFF",
        data_size + HEADER_SIZE - 8,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    encoded = header + payload

    declared = decode_header(encoded)
    if declared.data_size != len(encoded) - HEADER_SIZE or declared.file_size != len(encoded) - 8:
        raise EncoderInvariantError(
            f"header declares {declared.data_size} data bytes, payload has "
            f"{len(encoded) - HEADER_SIZE}"
        )
    return encoded


def decode_header(data: bytes) -> WavHeader:
    if len(data) < HEADER_SIZE:
        raise InvalidWavError(f"need {HEADER_SIZE} header bytes, got {len(data)}")
    (
        riff,
        file_size,
        wave,
        fmt,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        data_tag,
        data_size,
    ) = _HEADER.unpack_from(data)
    if riff != b"RIFF" or wave != b"WAVE":
        raise InvalidWavError("missing RIFF/WAVE tags")
    if fmt != b"fmt " or fmt_size != 16:
        raise InvalidWavError("expected a 16-byte fmt chunk")
    if data_tag != b"data":
        raise InvalidWavError("expected the data chunk right after fmt")
    return WavHeader(
        file_size=file_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits_per_sample,
        data_size=data_size,
    )
