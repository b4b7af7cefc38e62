from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Protocol

import numpy as np

from .config import EngineSettings, get_settings
from .dsp import FloatArray
from .errors import PlaybackError
from .voices import Voice

_LOGGER = logging.getLogger("gasmelody.device")

StreamCallback = Callable[[Any, int, Any, Any], None]


class OutputStream(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


StreamFactory = Callable[[int, StreamCallback], OutputStream]


class DeviceState(str, Enum):
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    RUNNING = "running"


@dataclass(slots=True)
class _ScheduledVoice:
    start_frame: int
    samples: FloatArray

    @property
    def end_frame(self) -> int:
        return self.start_frame + len(self.samples)


def _sounddevice_stream(sample_rate: int, callback: StreamCallback) -> OutputStream:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        # OSError: the module imports but PortAudio itself is missing.
        raise PlaybackError(f"sounddevice not available: {exc}") from exc
    sd: Any = sd_module
    try:
        return sd.OutputStream(
            samplerate=sample_rate,
            channels=1,
            dtype="float32",
            callback=callback,
        )
    except Exception as exc:
        raise PlaybackError(f"could not open output stream: {exc}") from exc


class OutputDevice:
    """Master output: the single live mix destination of the process.

    The stream is opened on first use and restarted whenever it was
    suspended. Until it runs, voices are dropped rather than queued, so a
    blocked or missing device never raises from the playback path.
    """

    _shared: ClassVar[OutputDevice | None] = None
    _shared_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        *,
        settings: EngineSettings | None = None,
        stream_factory: StreamFactory | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._stream_factory = stream_factory or _sounddevice_stream
        self._stream: OutputStream | None = None
        self._state = DeviceState.INACTIVE
        # Guards the voice list and frame counter shared with the audio thread.
        self._lock = threading.Lock()
        self._voices: list[_ScheduledVoice] = []
        self._frames_played = 0

    @classmethod
    def shared(cls) -> OutputDevice:
        with cls._shared_lock:
            if cls._shared is None:
                cls._shared = cls()
            return cls._shared

    @classmethod
    def reset_shared(cls) -> None:
        with cls._shared_lock:
            device, cls._shared = cls._shared, None
        if device is not None:
            device.close()

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def sample_rate(self) -> int:
        return self._settings.sample_rate

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames_played / self.sample_rate

    def ensure_active(self) -> DeviceState:
        """Open the stream if needed and resume it if suspended."""
        if self._stream is None:
            try:
                self._stream = self._stream_factory(self.sample_rate, self._callback)
            except PlaybackError as exc:
                _LOGGER.info("Output device not yet active: %s", exc)
                return self._state
            self._state = DeviceState.SUSPENDED

        if self._state is DeviceState.SUSPENDED:
            try:
                self._stream.start()
            except Exception as exc:
                _LOGGER.info("Output device could not resume: %s", exc, exc_info=True)
                return self._state
            self._state = DeviceState.RUNNING
        return self._state

    def suspend(self) -> None:
        if self._stream is None or self._state is not DeviceState.RUNNING:
            return
        self._stream.stop()
        self._state = DeviceState.SUSPENDED

    def close(self) -> None:
        stream, self._stream = self._stream, None
        self._state = DeviceState.INACTIVE
        with self._lock:
            self._voices.clear()
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            _LOGGER.info("Output stream close failed: %s", exc, exc_info=True)

    def add(self, voice: Voice) -> None:
        if self._state is not DeviceState.RUNNING:
            _LOGGER.debug("Dropping voice; output device is %s.", self._state.value)
            return
        samples = voice.samples * self._settings.master_gain
        with self._lock:
            # A start already in the past plays from now instead of being cut.
            start_frame = max(round(voice.start_time_seconds * self.sample_rate), self._frames_played)
            self._voices.append(_ScheduledVoice(start_frame=start_frame, samples=samples))

    def mix_block(self, frames: int) -> FloatArray:
        """Sum every voice overlapping the next ``frames`` output frames."""
        block = np.zeros(frames, dtype=np.float64)
        with self._lock:
            start = self._frames_played
            end = start + frames
            remaining: list[_ScheduledVoice] = []
            for voice in self._voices:
                if voice.start_frame < end:
                    src = max(start - voice.start_frame, 0)
                    dst = max(voice.start_frame - start, 0)
                    count = min(len(voice.samples) - src, frames - dst)
                    if count > 0:
                        block[dst : dst + count] += voice.samples[src : src + count]
                if voice.end_frame > end:
                    remaining.append(voice)
            self._voices = remaining
            self._frames_played = end
        return block

    def _callback(self, outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        _ = time_info
        if status:
            _LOGGER.debug("Output stream status: %s", status)
        outdata[:, 0] = self.mix_block(frames).astype(np.float32)
