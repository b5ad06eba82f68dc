from __future__ import annotations

import math

import numpy as np
import pytest

from retrosynth.adsr import Envelope
from retrosynth.generator import (
    AdditiveGenerator,
    ClipGenerator,
    Generator,
    OpGenerator,
    OpInstance,
    ScaleGenerator,
    T_DISABLED,
    T_FRESH,
    WaveFunction,
    make_instances,
)

FLAT = Envelope(0, 0, 0)


def _render(root: Generator, count: int, freq: float = 440.0, rate: int = 48000, dur: int | None = None) -> np.ndarray:
    slots = make_instances(root.bind(), freq, dur or count, rate)
    return np.array([root.invoke(slots, t) for t in range(count)])


def test_sine_mean_square_over_whole_period():
    op = OpGenerator("sine", FLAT, base_amp=1.0)
    values = _render(op, 100, freq=480.0)
    assert abs(np.mean(values**2) - 0.5) < 1e-6


def test_sine_phase_advances_before_first_sample():
    op = OpGenerator(WaveFunction.SINE, FLAT, base_amp=1.0)
    values = _render(op, 4, freq=480.0)
    expected = [math.sin(2 * math.pi * 0.01 * (t + 1)) for t in range(4)]
    np.testing.assert_allclose(values, expected, atol=1e-12)


def test_sine_440_rms_and_spectrum():
    op = OpGenerator("sine", FLAT, base_amp=20000.0)
    values = _render(op, 48000)
    rms = math.sqrt(np.mean(values**2))
    assert rms == pytest.approx(20000.0 / math.sqrt(2), rel=0.01)
    spectrum = np.abs(np.fft.rfft(values))
    assert int(np.argmax(spectrum)) == 440


def test_out_of_band_frequency_disables_operator():
    op = OpGenerator("sine", FLAT, base_amp=1000.0, freq_boost=30000.0)
    slots = make_instances(op.bind(), 440.0, 1000, 48000)
    assert all(op.invoke(slots, t) == 0.0 for t in range(100))
    assert slots[0].t == T_DISABLED
    assert slots[0].disabled
    # Once disabled, any later time is accepted.
    assert op.invoke(slots, 500) == 0.0


def test_negative_effective_frequency_disables_operator():
    op = OpGenerator("sine", FLAT, base_amp=1.0, freq_boost=-1000.0)
    assert not np.any(_render(op, 10))


def test_additive_sums_partials():
    low = OpGenerator("sine", FLAT, base_amp=10000.0)
    high = OpGenerator("sine", FLAT, base_amp=10000.0, freq_mul=2.0)
    root = AdditiveGenerator([low, high])
    values = _render(root, 1000)
    t = np.arange(1, 1001)
    expected = 10000.0 * np.sin(2 * np.pi * 440 * t / 48000) + 10000.0 * np.sin(2 * np.pi * 880 * t / 48000)
    np.testing.assert_allclose(values, expected, atol=1e-6)
    assert np.max(np.abs(values)) <= 20000.0


def test_repeated_time_returns_cached_value():
    op = OpGenerator("sine", FLAT, base_amp=1.0)
    slots = make_instances(op.bind(), 440.0, 100, 48000)
    assert slots[0].t == T_FRESH
    first = op.invoke(slots, 0)
    assert op.invoke(slots, 0) == first
    assert slots[0].t == 0


def test_skipping_time_is_rejected():
    op = OpGenerator("sine", FLAT, base_amp=1.0)
    slots = make_instances(op.bind(), 440.0, 100, 48000)
    op.invoke(slots, 0)
    with pytest.raises(RuntimeError):
        op.invoke(slots, 2)


def test_unbound_and_out_of_range_instances():
    op = OpGenerator("sine", FLAT)
    slots = make_instances(1, 440.0, 100, 48000)
    with pytest.raises(RuntimeError):
        op.invoke(slots, 0)
    far = OpGenerator("sine", FLAT, instance_index=5)
    with pytest.raises(ValueError):
        far.invoke(slots, 0)


def test_zero_scale_prunes_modulators():
    mod = OpGenerator("sine", FLAT, base_amp=1.0)
    carrier = OpGenerator("sine", FLAT, fm=mod, am=mod, fm_scale=0.0, am_scale=0.0)
    assert carrier.fm is None and carrier.am is None
    assert carrier.bind() == 1

    kept = OpGenerator("sine", FLAT, fm=mod, fm_scale=0.5)
    assert kept.fm is mod and kept.am is None


def test_noise_drops_frequency_modulator():
    mod = OpGenerator("sine", FLAT)
    noise = OpGenerator("noise", FLAT, fm=mod, fm_scale=1.0)
    assert noise.fm is None


def test_shared_modulator_is_bound_once():
    mod = OpGenerator("sine", FLAT, base_amp=0.01)
    a = OpGenerator("sine", FLAT, base_amp=1.0, fm=mod, fm_scale=1.0)
    b = OpGenerator("sine", FLAT, base_amp=1.0, freq_mul=2.0, fm=mod, fm_scale=1.0)
    root = AdditiveGenerator([a, b])
    assert root.bind() == 3
    assert sorted(op.instance_index for op in (a, b, mod)) == [0, 1, 2]
    assert len(list(root.walk())) == 4

    slots = make_instances(3, 440.0, 200, 48000)
    values = [root.invoke(slots, t) for t in range(200)]
    assert all(math.isfinite(v) for v in values)
    assert slots[mod.instance_index].t == 199


def test_bind_honours_start_offset():
    op = OpGenerator("sine", FLAT)
    assert op.bind(4) == 5
    assert op.instance_index == 4


def test_frequency_modulation_changes_output():
    plain = _render(OpGenerator("sine", FLAT, base_amp=1.0), 200)
    mod = OpGenerator("sine", FLAT, base_amp=1.0, freq_mul=0.5)
    modulated = _render(OpGenerator("sine", FLAT, base_amp=1.0, fm=mod, fm_scale=0.05), 200)
    assert not np.allclose(plain, modulated)
    assert np.max(np.abs(modulated)) <= 1.0 + 1e-12


def test_amplitude_modulation_adds_to_envelope():
    mod = OpGenerator("sine", FLAT, base_amp=1.0, freq_mul=0.25)
    op = OpGenerator("sine", FLAT, base_amp=1.0, am=mod, am_scale=0.5)
    values = _render(op, 2000)
    assert np.max(np.abs(values)) > 1.0
    assert np.max(np.abs(values)) <= 1.5 + 1e-9


def test_feedback_uses_previous_sample():
    plain = _render(OpGenerator("sine", FLAT, base_amp=1.0), 50)
    fed = _render(OpGenerator("sine", FLAT, base_amp=1.0, fm_feedback=0.01), 50)
    np.testing.assert_allclose(fed[:2], plain[:2])
    assert not np.allclose(fed[2:], plain[2:])


def test_envelope_shapes_amplitude():
    env = Envelope(attack=10, decay=0, release=10)
    op = OpGenerator("sine", env, base_amp=1.0)
    slots = make_instances(op.bind(), 440.0, 100, 48000)
    assert op.length(slots) == 110
    values = [op.invoke(slots, t) for t in range(120)]
    assert all(v == 0.0 for v in values[110:])


@pytest.mark.parametrize(
    "fop, first, second",
    [
        ("square", 4 / math.pi, 4 / (3 * math.pi)),
        ("triangle", 8 / math.pi**2, -8 / (9 * math.pi**2)),
        ("sawtooth", 2 / math.pi, -1 / math.pi),
    ],
)
def test_band_limited_partial_coefficients(fop, first, second):
    op = OpGenerator(fop, FLAT, base_amp=1.0)
    slots = make_instances(op.bind(), 440.0, 10, 48000)
    op.invoke(slots, 0)
    k, coeff = slots[0].partials
    assert coeff[0] == pytest.approx(first)
    assert coeff[1] == pytest.approx(second)
    assert np.all(k * 440.0 < 24000)


def test_square_partial_count_and_harmonic_limit():
    op = OpGenerator("square", FLAT, base_amp=1.0)
    slots = make_instances(op.bind(), 440.0, 10, 48000)
    op.invoke(slots, 0)
    k, _ = slots[0].partials
    assert k.tolist() == list(range(1, 54, 2))

    limited = make_instances(1, 440.0, 10, 48000, hlimit=3)
    op.invoke(limited, 0)
    k, _ = limited[0].partials
    assert k.tolist() == [1.0, 3.0, 5.0]


def test_square_wave_stays_bounded():
    values = _render(OpGenerator("square", FLAT, base_amp=1000.0), 1000)
    assert np.max(np.abs(values)) < 1200.0
    assert np.max(values) > 900.0


def test_noise_is_deterministic_and_bounded():
    first = _render(OpGenerator("noise", FLAT, base_amp=100.0), 500)
    second = _render(OpGenerator("noise", FLAT, base_amp=100.0), 500)
    np.testing.assert_array_equal(first, second)
    assert np.max(np.abs(first)) <= 100.0
    assert np.std(first) > 10.0


def test_scale_and_clip():
    reference = _render(OpGenerator("sine", FLAT, base_amp=1000.0), 200)
    scaled = _render(ScaleGenerator(OpGenerator("sine", FLAT, base_amp=1000.0), 0.5), 200)
    np.testing.assert_allclose(scaled, reference * 0.5)

    clipped = _render(ClipGenerator(OpGenerator("sine", FLAT, base_amp=1000.0), 250.0), 200)
    np.testing.assert_allclose(clipped, np.clip(reference, -250.0, 250.0))
    assert np.max(clipped) == 250.0


class _NanGenerator(Generator):
    def _bind(self, start, seen):
        return start

    def length(self, slots):
        return 1

    def invoke(self, slots, t):
        return float("nan")


def test_additive_drops_non_finite_parts():
    op = OpGenerator("sine", FLAT, base_amp=1.0)
    root = AdditiveGenerator([_NanGenerator(), op])
    reference = _render(OpGenerator("sine", FLAT, base_amp=1.0), 20)
    np.testing.assert_allclose(_render(root, 20), reference)


def test_length_is_longest_part():
    short = OpGenerator("sine", Envelope(0, 0, 10))
    long = OpGenerator("sine", Envelope(0, 0, 500))
    root = AdditiveGenerator([short, long])
    slots = make_instances(root.bind(), 440.0, 1000, 48000)
    assert root.length(slots) == 1500
    assert ScaleGenerator(root, 2.0).length(slots) == 1500


def test_instance_validation():
    slot = OpInstance.create(440.0, 10, 44100)
    assert slot.ny_limit == 22050
    assert slot.t == T_FRESH
    with pytest.raises(ValueError):
        OpInstance.create(0.0, 10, 48000)
    with pytest.raises(ValueError):
        OpInstance.create(440.0, 0, 48000)
    with pytest.raises(ValueError):
        OpInstance.create(440.0, 10, 22050)
    with pytest.raises(ValueError):
        OpInstance.create(440.0, 10, 48000, ny_limit=48001)
    with pytest.raises(ValueError):
        make_instances(0, 440.0, 10, 48000)


def test_operator_parameter_validation():
    with pytest.raises(ValueError):
        OpGenerator("sine", FLAT, freq_mul=0.0)
    with pytest.raises(ValueError):
        OpGenerator("sine", FLAT, base_amp=-1.0)
    with pytest.raises(ValueError):
        OpGenerator("sine", FLAT, fm_scale=float("nan"))
    with pytest.raises(ValueError):
        OpGenerator("pulse", FLAT)
    with pytest.raises(TypeError):
        OpGenerator("sine", None)
    with pytest.raises(ValueError):
        AdditiveGenerator([])
    with pytest.raises(ValueError):
        ClipGenerator(OpGenerator("sine", FLAT), -1.0)
