import dataclasses

import pytest

from retrosynth.adsr import Envelope


def test_attack_decay_sustain_release_shape():
    env = Envelope(attack=100, decay=100, release=500, limit=0, peak=2.0)
    dur = 1000
    assert env.compute(0, dur) == pytest.approx(2.0 / 100)
    assert env.compute(99, dur) == 2.0
    assert env.compute(100, dur) == pytest.approx(1.99)
    assert env.compute(199, dur) == pytest.approx(1.0)
    assert env.compute(200, dur) == 1.0
    assert env.compute(999, dur) == 1.0
    assert env.compute(1000, dur) == pytest.approx(1.0 - 1 / 501)


def test_envelope_length_and_release_tail():
    env = Envelope(attack=100, decay=100, release=500, limit=0, peak=2.0)
    assert env.length(1000) == 1500
    assert env.compute(1499, 1000) == pytest.approx(1.0 - 500 / 501)
    assert env.compute(1499, 1000) == pytest.approx(0.002, abs=1e-5)
    assert env.compute(1500, 1000) == 0.0
    assert env.compute(5000, 1000) == 0.0


def test_limit_fades_sustain_and_shortens_note():
    env = Envelope(attack=10, decay=10, release=20, limit=100, peak=1.0)
    assert env.length(1000) == 120 + 20
    assert env.length(50) == 50 + 20
    assert env.compute(20, 1000) == 1.0
    assert env.compute(70, 1000) == pytest.approx(0.5)
    final = env.compute(119, 1000)
    assert final == pytest.approx(0.01)
    assert env.compute(120, 1000) == pytest.approx(final * (1 - 1 / 21))
    assert env.compute(140, 1000) == 0.0


def test_release_scales_value_reached_mid_attack():
    env = Envelope(attack=100, decay=0, release=9, peak=1.0)
    final = env.compute(49, 50)
    assert final == pytest.approx(0.5)
    assert env.compute(50, 50) == pytest.approx(final * 0.9)
    assert env.compute(58, 50) == pytest.approx(final * 0.1)


def test_trivial_envelope_is_constant():
    env = Envelope(0, 0, 0)
    assert env.length(48000) == 48000
    assert all(env.compute(t, 48000) == 1.0 for t in (0, 1, 24000, 47999))
    assert env.compute(48000, 48000) == 0.0


def test_from_millis_converts_to_samples():
    env = Envelope.from_millis(10, 20, 30, 0, 1.5, 48000)
    assert (env.attack, env.decay, env.release, env.limit) == (480, 960, 1440, 0)
    assert env.peak == 1.5
    with pytest.raises(ValueError):
        Envelope.from_millis(10, 20, 30, 0, 1.5, 22050)


def test_envelope_is_immutable():
    env = Envelope(1, 2, 3)
    with pytest.raises(dataclasses.FrozenInstanceError):
        env.attack = 5


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(attack=-1, decay=0, release=0),
        dict(attack=0, decay=0, release=0, limit=-5),
        dict(attack=1.5, decay=0, release=0),
        dict(attack=0, decay=0, release=0, peak=0.0),
        dict(attack=0, decay=0, release=0, peak=float("inf")),
    ],
)
def test_invalid_envelope_rejected(kwargs):
    with pytest.raises(ValueError):
        Envelope(**kwargs)


def test_invalid_queries_rejected():
    env = Envelope(1, 1, 1)
    with pytest.raises(ValueError):
        env.length(0)
    with pytest.raises(ValueError):
        env.compute(0, 0)
    with pytest.raises(ValueError):
        env.compute(-1, 10)
