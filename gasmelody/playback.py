from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Callable, Protocol

import numpy as np

from .config import EngineSettings, get_settings
from .device import DeviceState, OutputDevice
from .series import NormalizationStats, Series, compute_stats
from .styles import Style, resolve_style
from .voices import MixTarget, mix_events, note_event

_LOGGER = logging.getLogger("gasmelody.playback")

NoteCallback = Callable[[int], None]
CompleteCallback = Callable[[], None]


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class LiveDestination(MixTarget, Protocol):
    @property
    def current_time(self) -> float: ...

    def ensure_active(self) -> DeviceState: ...


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    STOPPED = "stopped"


def _daemon_timer(interval: float, function: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(interval, function)
    timer.daemon = True
    return timer


@dataclass(frozen=True, slots=True)
class _Run:
    generation: int
    series: Series
    stats: NormalizationStats
    style: Style | str
    tempo_seconds: float
    rng: np.random.Generator
    on_note: NoteCallback | None
    on_complete: CompleteCallback | None


class PlaybackScheduler:
    """Plays a series note by note, one step per ``tempo_seconds`` of wall clock.

    Steps run on timer threads but never overlap: every step and every
    ``stop()`` takes the same re-entrant lock, and a step only acts if its
    run generation is still current. Once ``stop()`` returns, the cancelled
    run schedules no note and fires no callback. Callbacks run under the
    lock and may call ``stop()`` or ``play()`` themselves.
    """

    def __init__(
        self,
        destination: LiveDestination | None = None,
        *,
        settings: EngineSettings | None = None,
        timer_factory: TimerFactory = _daemon_timer,
    ) -> None:
        self._destination = destination
        self._settings = settings or get_settings()
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        self._state = PlaybackState.IDLE
        self._generation = 0
        self._cursor = 0
        self._run: _Run | None = None
        self._timer: TimerHandle | None = None

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    def play(
        self,
        series: Series,
        style: Style | str,
        tempo_seconds: float,
        on_note: NoteCallback | None = None,
        on_complete: CompleteCallback | None = None,
    ) -> DeviceState:
        """Start a new run, cancelling any run in progress first.

        Returns the output device state. Anything but ``RUNNING`` means the
        device is not yet active: notes are stepped and callbacks fire, but
        nothing is heard.
        """

        if tempo_seconds <= 0:
            raise ValueError("tempo_seconds must be positive")
        resolved = resolve_style(style, strict=self._settings.strict)
        stats = compute_stats(series)

        with self._lock:
            self._cancel()
            destination = self._resolve_destination()
            device_state = destination.ensure_active()
            if device_state is not DeviceState.RUNNING:
                _LOGGER.info("Output device %s; playing silently.", device_state.value)

            self._generation += 1
            self._run = _Run(
                generation=self._generation,
                series=series,
                stats=stats,
                style=resolved,
                tempo_seconds=tempo_seconds,
                rng=np.random.default_rng(self._settings.jitter_seed),
                on_note=on_note,
                on_complete=on_complete,
            )
            self._cursor = 0
            self._state = PlaybackState.PLAYING
            _LOGGER.debug(
                "Playing %d notes (%s, %.3fs/note).", len(series), resolved, tempo_seconds
            )
            self._step(self._generation)
        return device_state

    def stop(self) -> None:
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                return
            self._cancel()
            self._state = PlaybackState.STOPPED
            _LOGGER.debug("Playback stopped at note %d.", self._cursor)

    def _resolve_destination(self) -> LiveDestination:
        if self._destination is None:
            self._destination = OutputDevice.shared()
        return self._destination

    def _cancel(self) -> None:
        self._generation += 1
        self._run = None
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _step(self, generation: int) -> None:
        with self._lock:
            run = self._run
            if run is None or generation != self._generation:
                return
            self._timer = None

            if self._cursor >= len(run.series):
                self._state = PlaybackState.IDLE
                self._run = None
                self._generation += 1
                if run.on_complete is not None:
                    self._invoke("on_complete", run.on_complete)
                return

            index = self._cursor
            destination = self._resolve_destination()
            event = note_event(
                run.series[index],
                run.stats,
                run.style,
                run.tempo_seconds,
                destination.current_time,
                rng=run.rng,
            )
            mix_events((event,), destination, self._settings)
            self._cursor = index + 1
            if run.on_note is not None:
                self._invoke("on_note", run.on_note, index)

            # The callback may have stopped or restarted playback.
            if generation != self._generation:
                return
            timer = self._timer_factory(run.tempo_seconds, partial(self._step, generation))
            self._timer = timer
            timer.start()

    def _invoke(self, name: str, callback: Callable[..., None], *args: int) -> None:
        try:
            callback(*args)
        except Exception as exc:
            _LOGGER.warning("Playback %s callback failed: %s", name, exc, exc_info=True)
