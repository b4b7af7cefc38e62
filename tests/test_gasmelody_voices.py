import numpy as np
import pytest

from gasmelody.config import EngineSettings
from gasmelody.errors import UnknownStyleError
from gasmelody.series import DataPoint, compute_stats
from gasmelody.styles import Style
from gasmelody.voices import (
    NoteEvent,
    Voice,
    build_note_events,
    mix_events,
    synthesize,
    voice_seconds,
)

SETTINGS = EngineSettings()
SR = SETTINGS.sample_rate


def _event(style: Style | str, tempo: float = 0.5, start: float = 0.0) -> NoteEvent:
    return NoteEvent(
        frequency_hz=261.63,
        start_time_seconds=start,
        style=style,  # type: ignore[arg-type]
        note_duration_seconds=tempo,
    )


@pytest.mark.parametrize("style", list(Style))
def test_voices_are_deterministic(style: Style) -> None:
    first = synthesize(_event(style), SETTINGS)
    second = synthesize(_event(style), SETTINGS)
    assert np.array_equal(first.samples, second.samples)
    assert np.any(first.samples != 0)


@pytest.mark.parametrize("style", list(Style))
def test_voices_release_fully_before_the_oscillators_stop(style: Style) -> None:
    voice = synthesize(_event(style), SETTINGS)
    tail = voice.samples[-int(0.01 * SR) :]
    assert np.max(np.abs(tail)) < 1e-3


def test_voice_keeps_caller_start_time() -> None:
    voice = synthesize(_event(Style.RETRO, start=12.5), SETTINGS)
    assert voice.start_time_seconds == 12.5


def test_voice_lengths_include_safety_tail() -> None:
    tempo = 0.5
    for style, envelope in ((Style.CYBERPUNK, tempo), (Style.RETRO, tempo)):
        voice = synthesize(_event(style, tempo), SETTINGS)
        assert len(voice.samples) == round((envelope + 0.5) * SR)
    pad = synthesize(_event(Style.ETHEREAL, tempo), SETTINGS)
    assert len(pad.samples) == round((1.5 * tempo + 0.5) * SR)
    assert voice_seconds(_event(Style.ETHEREAL, tempo), SETTINGS) == pytest.approx(1.25)


def test_retro_gate_is_hard_and_staccato() -> None:
    tempo = 0.5
    samples = synthesize(_event(Style.RETRO, tempo), SETTINGS).samples
    gate_on = int(0.005 * SR)
    gate_off = int(0.8 * tempo * SR)
    assert np.all(samples[: gate_on - 1] == 0.0)
    assert np.any(samples[gate_on + 1 : gate_off] != 0.0)
    assert np.all(samples[gate_off + 1 :] == 0.0)


def test_ethereal_pad_rings_past_the_next_note() -> None:
    tempo = 0.5
    samples = synthesize(_event(Style.ETHEREAL, tempo), SETTINGS).samples
    after_next_onset = samples[int(tempo * SR) : int(1.2 * tempo * SR)]
    assert np.max(np.abs(after_next_onset)) > 0.01


def test_ethereal_pad_has_slow_attack() -> None:
    tempo = 1.0
    samples = synthesize(_event(Style.ETHEREAL, tempo), SETTINGS).samples
    early = np.max(np.abs(samples[: int(0.05 * SR)]))
    peak = np.max(np.abs(samples))
    assert early < 0.2 * peak


def test_cyberpunk_attack_is_near_instant() -> None:
    samples = synthesize(_event(Style.CYBERPUNK), SETTINGS).samples
    peak_index = int(np.argmax(np.abs(samples)))
    assert peak_index < int(0.1 * SR)


def test_unknown_style_fails_fast_when_strict() -> None:
    with pytest.raises(UnknownStyleError):
        synthesize(_event("polka"), SETTINGS)


def test_unknown_style_is_silent_in_production() -> None:
    lenient = EngineSettings(strict=False)
    voice = synthesize(_event("polka"), lenient)
    assert voice.samples.size > 0
    assert not voice.samples.any()


def test_build_note_events_spaces_notes_by_tempo() -> None:
    series = [
        DataPoint(sequence_number=n, activity=a, primary_metric=1.0, timestamp=n)
        for n, a in ((1, 10), (2, 50), (3, 90))
    ]
    stats = compute_stats(series)
    events = list(build_note_events(series, stats, Style.RETRO, 0.5))
    assert [event.start_time_seconds for event in events] == [0.0, 0.5, 1.0]
    assert [event.normalized for event in events] == [0.0, 0.5, 1.0]
    assert all(event.note_duration_seconds == 0.5 for event in events)
    assert events[0].frequency_hz < events[1].frequency_hz < events[2].frequency_hz


class _RecordingTarget:
    def __init__(self) -> None:
        self.voices: list[Voice] = []

    def add(self, voice: Voice) -> None:
        self.voices.append(voice)


def test_mix_events_adds_one_voice_per_event() -> None:
    target = _RecordingTarget()
    events = [_event(Style.RETRO, start=0.0), _event(Style.RETRO, start=0.5)]
    assert mix_events(events, target, SETTINGS) == 2
    assert [voice.start_time_seconds for voice in target.voices] == [0.0, 0.5]
    assert np.array_equal(target.voices[0].samples, synthesize(events[0], SETTINGS).samples)


def test_mix_events_with_no_events_adds_nothing() -> None:
    target = _RecordingTarget()
    assert mix_events([], target, SETTINGS) == 0
    assert target.voices == []
