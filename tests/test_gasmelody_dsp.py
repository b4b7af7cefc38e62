import numpy as np
import pytest

from gasmelody.dsp import (
    ParamEvent,
    add_voice,
    apply_lowpass,
    apply_swept_lowpass,
    automation_curve,
    lowpass_coeffs,
    oscillator,
    sawtooth,
    sine,
    square,
    triangle,
)

SR = 44_100


def _rms(signal: np.ndarray) -> float:
    return float(np.sqrt(np.mean(signal**2)))


@pytest.mark.parametrize("generate", [sine, triangle, sawtooth, square])
def test_oscillators_render_exact_length(generate) -> None:
    out = generate(220.0, 4_410, SR)
    assert out.shape == (4_410,)
    assert np.all(np.isfinite(out))
    assert np.max(np.abs(out)) < 1.3


def test_oscillators_are_deterministic() -> None:
    first = oscillator("sawtooth", 311.13, 22_050, SR)
    second = oscillator("sawtooth", 311.13, 22_050, SR)
    assert np.array_equal(first, second)


def test_unknown_waveform_is_rejected() -> None:
    with pytest.raises(ValueError):
        oscillator("noise", 440.0, 100, SR)


def test_zero_length_oscillators() -> None:
    assert sawtooth(440.0, 0, SR).size == 0
    assert square(440.0, 0, SR).size == 0


def test_linear_ramp_reaches_target_and_holds() -> None:
    curve = automation_curve(0.0, (ParamEvent("linear", 0.1, 0.5),), SR, SR)
    ramp_end = int(0.1 * SR)
    assert curve[0] == 0.0
    assert curve[ramp_end // 2] == pytest.approx(0.25, abs=1e-3)
    assert np.all(curve[ramp_end + 1 :] == 0.5)


def test_exponential_ramp_is_geometric() -> None:
    curve = automation_curve(1.0, (ParamEvent("exponential", 1.0, 0.01),), SR, SR)
    assert curve[SR // 2] == pytest.approx(0.1, rel=1e-3)
    assert np.all(np.diff(curve) <= 0)


def test_exponential_ramp_from_zero_is_rejected() -> None:
    with pytest.raises(ValueError):
        automation_curve(0.0, (ParamEvent("exponential", 0.5, 0.1),), SR, SR)


def test_set_events_step_without_ramping() -> None:
    curve = automation_curve(
        0.0,
        (ParamEvent("set", 0.25, 0.15), ParamEvent("set", 0.5, 0.0)),
        SR,
        SR,
    )
    assert np.all(curve[: int(0.25 * SR) - 1] == 0.0)
    assert np.all(curve[int(0.25 * SR) + 1 : int(0.5 * SR) - 1] == 0.15)
    assert np.all(curve[int(0.5 * SR) + 1 :] == 0.0)


def test_lowpass_attenuates_above_cutoff() -> None:
    high = sine(8_000.0, SR, SR)
    low = sine(200.0, SR, SR)
    assert _rms(apply_lowpass(high, 1_000.0, 0.707, SR)) < 0.1 * _rms(high)
    assert _rms(apply_lowpass(low, 1_000.0, 0.707, SR)) > 0.9 * _rms(low)


def test_lowpass_coefficients_are_cached() -> None:
    b1, a1 = lowpass_coeffs(1_000.0, 0.707, SR)
    b2, a2 = lowpass_coeffs(1_000.0, 0.707, SR)
    assert b1 is b2
    assert a1 is a2
    assert a1[0] == pytest.approx(1.0)


def test_swept_lowpass_with_constant_cutoff_matches_static() -> None:
    signal = sawtooth(330.0, 10_000, SR)
    cutoffs = np.full(len(signal), 2_000.0)
    swept = apply_swept_lowpass(signal, cutoffs, 1.5, SR)
    static = apply_lowpass(signal, 2_000.0, 1.5, SR)
    assert np.allclose(swept, static, atol=1e-9)


def test_add_voice_mixes_at_offset() -> None:
    buffer = np.zeros(10)
    add_voice(buffer, np.ones(3), 4)
    assert buffer.tolist() == [0, 0, 0, 0, 1, 1, 1, 0, 0, 0]


def test_add_voice_clips_past_the_end_with_fade() -> None:
    buffer = np.zeros(2_000)
    add_voice(buffer, np.ones(1_000), 1_500)
    assert buffer[1_500] == 1.0
    assert buffer[-1] == pytest.approx(0.0)
    assert np.all(buffer[:1_500] == 0.0)


def test_add_voice_past_buffer_is_ignored() -> None:
    buffer = np.zeros(10)
    add_voice(buffer, np.ones(3), 10)
    assert not buffer.any()
