import pytest

from retrosynth import quant
from retrosynth.quant import QuantTables
from retrosynth.stereo import StereoPosition
from retrosynth.ttone import PITCH_MAX, PITCH_MIN


@pytest.fixture
def tables(monkeypatch):
    monkeypatch.setattr(quant, "_TABLES", QuantTables(0))


def test_constant_position_ignores_pitch():
    pos = StereoPosition.constant(-1200)
    assert pos.is_constant
    assert pos.position(PITCH_MIN) == -1200
    assert pos.position(PITCH_MAX) == -1200


def test_field_interpolates_between_pitches():
    pos = StereoPosition.field(-32767, -39, 32767, 48)
    assert not pos.is_constant
    assert pos.position(-39) == -32767
    assert pos.position(48) == 32767
    positions = [pos.position(p) for p in range(PITCH_MIN, PITCH_MAX + 1)]
    assert positions == sorted(positions)
    assert pos.position(4) == -32767 + (65534 * 43) // 87


def test_field_clamps_outside_pitch_range():
    pos = StereoPosition.field(-1000, -12, 1000, 12)
    assert pos.position(-30) == -1000
    assert pos.position(30) == 1000
    assert pos.position(0) == 0


def test_field_with_equal_positions_collapses():
    pos = StereoPosition.field(500, -10, 500, 10)
    assert pos == StereoPosition.constant(500)


@pytest.mark.parametrize(
    "args",
    [
        (-1000, 10, 1000, 10),
        (-1000, 12, 1000, -12),
        (-40000, -12, 1000, 12),
        (-1000, -40, 1000, 12),
    ],
)
def test_invalid_fields_rejected(args):
    with pytest.raises(ValueError):
        StereoPosition.field(*args)


def test_image_pans_hard_left(tables):
    pos = StereoPosition.constant(-32767)
    assert pos.image(1000, 0) == (1000, 0)
    assert pos.gains(0) == (1.0, 0.0)


def test_image_flatten_copies_sample():
    assert StereoPosition.constant(32767).image(-321, 5, flatten=True) == (-321, -321)


def test_centre_image_is_balanced(tables):
    left, right = StereoPosition.constant(0).image(10000, 0)
    assert left == right == 7071
